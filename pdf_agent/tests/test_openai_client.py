import json

import pytest

from pdf_agent.domain.exceptions import ApiError, NetworkError, ProviderResponseError
from pdf_agent.domain.models import ChatMessage, ChatRequest
from pdf_agent.providers.openai_client import OpenAICompatClient
from pdf_agent.tools.definitions import ToolCall, ToolDef, ToolParam


class SettingsStub:
    openai_api_key = "k"
    openai_base_url = "https://api.openai.com/v1"
    http_timeout = 1.0
    max_tokens = 1024


def _fake_client(monkeypatch, body, status_code=200, captured=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = "boom"

        def json(self):
            return body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def test_openai_client_parse_basic(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(
        monkeypatch,
        {
            "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        },
    )
    res = oc.chat(req)
    assert res.choices[0].message.content == "ok"
    assert res.message.tool_calls is None
    assert res.usage.total_tokens == 2


def test_openai_client_tools_payload(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    tool = ToolDef(
        name="split_pdf",
        description="split",
        params={
            "documentId": ToolParam(
                name="documentId",
                description="Document",
                required=True,
                schema={"type": "string"},
            )
        },
    )
    req = ChatRequest(
        provider="openai",
        model="pdf-agent",
        messages=[ChatMessage(role="user", content="hi")],
        tools=[tool],
    )
    captured = {}
    _fake_client(monkeypatch, {"choices": [{"message": {"content": "x"}}]}, captured=captured)
    oc.chat(req)
    payload = captured["payload"]
    assert payload["tool_choice"] == "auto"
    assert payload["tools"][0]["function"]["name"] == "split_pdf"
    assert payload["tools"][0]["function"]["parameters"]["required"] == ["documentId"]
    assert captured["headers"]["Authorization"] == "Bearer k"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"


def test_openai_client_tool_messages_are_flat(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    call = ToolCall(id="call_1", name="extract_text", arguments={"documentId": "d1"})
    req = ChatRequest(
        provider="openai",
        model="pdf-agent",
        messages=[
            ChatMessage(role="system", content="sys"),
            ChatMessage(role="user", content="read it"),
            ChatMessage(role="assistant", content="", tool_calls=[call]),
            ChatMessage(role="tool", content='{"success": true}', tool_call_id="call_1", tool_name="extract_text"),
        ],
    )
    captured = {}
    _fake_client(monkeypatch, {"choices": [{"message": {"content": "done"}}]}, captured=captured)
    oc.chat(req)
    msgs = captured["payload"]["messages"]
    assert [m["role"] for m in msgs] == ["system", "user", "assistant", "tool"]
    assert msgs[2]["content"] is None
    assert msgs[2]["tool_calls"][0]["id"] == "call_1"
    assert json.loads(msgs[2]["tool_calls"][0]["function"]["arguments"]) == {"documentId": "d1"}
    assert msgs[3] == {"role": "tool", "content": '{"success": true}', "tool_call_id": "call_1", "name": "extract_text"}


def test_openai_client_parse_tool_calls(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(
        monkeypatch,
        {
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [
                            {
                                "id": "tool123",
                                "type": "function",
                                "function": {"name": "move_pages", "arguments": '{"documentId": "d1", "pageOrder": [2, 1]}'},
                            }
                        ],
                    },
                    "finish_reason": "tool_calls",
                }
            ],
        },
    )
    res = oc.chat(req)
    tc = res.choices[0].message.tool_calls[0]
    assert tc.id == "tool123"
    assert tc.name == "move_pages"
    assert tc.arguments["pageOrder"] == [2, 1]
    assert res.message.content == ""
    assert res.finish_reason == "tool_calls"


def test_openai_client_rejects_malformed_arguments(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(
        monkeypatch,
        {
            "choices": [
                {
                    "message": {
                        "tool_calls": [{"id": "t1", "function": {"name": "split_pdf", "arguments": "{not json"}}],
                    }
                }
            ]
        },
    )
    with pytest.raises(ProviderResponseError) as exc:
        oc.chat(req)
    assert exc.value.code == "MALFORMED_TOOL_ARGUMENTS"


def test_openai_client_no_choices(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(monkeypatch, {"choices": []})
    with pytest.raises(ProviderResponseError) as exc:
        oc.chat(req)
    assert exc.value.code == "NO_CHOICES"


@pytest.mark.parametrize(
    "body",
    [
        {"choices": "oops"},
        {"choices": ["oops"]},
        {"choices": [{"message": "oops"}]},
        {"choices": [{"message": {"role": "assistant", "tool_calls": ["bad"]}}]},
        {"choices": [{"message": {"role": "assistant", "tool_calls": [{"id": "c1", "function": "bad"}]}}]},
        {"choices": [{"message": {"role": "assistant", "function_call": "bad"}}]},
    ],
)
def test_openai_client_rejects_non_object_shapes(monkeypatch, body):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(monkeypatch, body)
    with pytest.raises(ProviderResponseError) as exc:
        oc.chat(req)
    assert exc.value.code == "MALFORMED_RESPONSE"


def test_openai_client_api_error(monkeypatch):
    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])
    _fake_client(monkeypatch, {}, status_code=500)
    with pytest.raises(ApiError) as exc:
        oc.chat(req)
    assert exc.value.http_status == 500


def test_openai_client_network_error(monkeypatch):
    import httpx

    oc = OpenAICompatClient(SettingsStub())
    req = ChatRequest(provider="openai", model="pdf-agent", messages=[ChatMessage(role="user", content="hi")])

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise httpx.ConnectError("refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError):
        oc.chat(req)
