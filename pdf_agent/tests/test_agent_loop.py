import json

from pdf_agent.agents.pdf_agent import (
    APOLOGY_TEXT,
    EMPTY_FINAL_TEXT,
    MAX_ROUNDS_TEXT,
    AgentConfig,
    PdfAgentEngine,
    ProviderSelection,
    run_agent_turn,
)
from pdf_agent.domain.exceptions import ApiError
from pdf_agent.domain.models import ChatChoice, ChatMessage, ChatResult
from pdf_agent.tools.definitions import ToolCall, ToolName
from pdf_agent.tools.executor import TOOL_HANDLERS, ToolExecutor


class ScriptedProvider:
    """按轮次调用 script(round, request)，返回 assistant 消息。"""

    name = "stub"

    def __init__(self, script):
        self._script = script
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        message = self._script(len(self.requests), req)
        return ChatResult(provider="stub", model=req.model, choices=[ChatChoice(index=0, message=message)])


def reply(text="", calls=None):
    return ChatMessage(role="assistant", content=text, tool_calls=calls or None)


def call(call_id, name, **arguments):
    return ToolCall(id=call_id, name=name, arguments=arguments)


def test_turn_stops_at_round_ceiling(make_context):
    provider = ScriptedProvider(lambda n, req: reply(calls=[call(f"c{n}", "prepare_stamp", text="X")]))
    events = []

    result = PdfAgentEngine(provider).run_turn("stamp forever", make_context(), on_log_event=events.append)

    assert len(provider.requests) == 20
    assert result.final_text == MAX_ROUNDS_TEXT
    assert result.stop_reason == "max_rounds"
    assert len(result.operations) == 20
    assert events[-1].kind == "message"
    assert events[-1].stop_reason == "max_rounds"


def test_round_limit_is_capped_at_twenty():
    assert AgentConfig(max_tool_rounds=50).max_tool_rounds == 20
    assert AgentConfig(max_tool_rounds=3).max_tool_rounds == 3


def test_failing_tool_does_not_end_turn(make_context):
    def boom(args, ctx):
        raise RuntimeError("renderer crashed")

    handlers = dict(TOOL_HANDLERS)
    handlers[ToolName.PREPARE_STAMP] = boom

    def script(n, req):
        if n == 1:
            return reply(calls=[call("c1", "prepare_stamp", text="X"), call("c2", "extract_text", documentId="doc1")])
        return reply("Stamp sizing failed, but I read the text.")

    provider = ScriptedProvider(script)
    events = []
    result = PdfAgentEngine(provider, tool_executor=ToolExecutor(handlers)).run_turn(
        "go", make_context(), on_log_event=events.append
    )

    assert result.stop_reason == "completed"
    assert [(op.tool_name, op.success) for op in result.operations] == [("prepare_stamp", False), ("extract_text", True)]
    tool_msgs = [m for m in provider.requests[1].messages if m.role == "tool"]
    assert [m.tool_call_id for m in tool_msgs] == ["c1", "c2"]
    assert "renderer crashed" in tool_msgs[0].content
    assert [e.kind for e in events] == ["tool_use", "error", "tool_use", "tool_result", "message"]


def test_raising_log_callback_does_not_discard_turn(make_context):
    def script(n, req):
        if n == 1:
            return reply(calls=[call("c1", "prepare_stamp", text="X")])
        return reply("done")

    seen = []

    def flaky_callback(event):
        seen.append(event.kind)
        raise RuntimeError("log sink unavailable")

    result = PdfAgentEngine(ScriptedProvider(script)).run_turn("go", make_context(), on_log_event=flaky_callback)

    assert result.final_text == "done"
    assert result.stop_reason == "completed"
    assert [(op.tool_name, op.success) for op in result.operations] == [("prepare_stamp", True)]
    assert seen == ["tool_use", "tool_result", "message"]


def test_provider_failure_returns_apology(make_context):
    def script(n, req):
        raise ApiError(code="API_ERROR", message="upstream down", http_status=502)

    events = []
    result = PdfAgentEngine(ScriptedProvider(script)).run_turn("hi", make_context(), on_log_event=events.append)

    assert result.final_text == APOLOGY_TEXT
    assert result.stop_reason == "error"
    assert events[-1].kind == "error"
    assert events[-1].error == "upstream down"


def test_documents_produced_earlier_in_turn_are_usable(make_context):
    def script(n, req):
        if n == 1:
            return reply(calls=[call("c1", "combine_pdfs", documentIds=["doc1", "doc1"])])
        if n == 2:
            produced = json.loads(req.messages[-1].content)
            return reply(calls=[call("c2", "extract_text", documentId=produced["id"])])
        return reply("Combined and read.")

    ctx = make_context(pages=2)
    provider = ScriptedProvider(script)
    result = PdfAgentEngine(provider).run_turn("combine then read", ctx)

    assert result.stop_reason == "completed"
    assert [op.success for op in result.operations] == [True, True]
    assert [d.kind for d in ctx.documents] == ["original", "revised"]
    extracted = json.loads(provider.requests[2].messages[-1].content)
    assert extracted["totalPages"] == 4


def test_empty_final_reply_gets_default_text(make_context):
    result = PdfAgentEngine(ScriptedProvider(lambda n, req: reply(""))).run_turn("ok", make_context())
    assert result.final_text == EMPTY_FINAL_TEXT
    assert result.rounds == 1


def test_run_agent_turn_never_raises_on_unknown_provider(storage):
    events = []
    result = run_agent_turn(
        "hi",
        documents=[],
        session_id="b" * 32,
        storage=storage,
        provider_config=ProviderSelection(provider="nope"),
        on_log_event=events.append,
    )
    assert result.final_text == APOLOGY_TEXT
    assert result.stop_reason == "error"
    assert events[0].kind == "error"


def test_run_agent_turn_with_injected_provider(make_context, storage):
    ctx = make_context()
    result = run_agent_turn(
        "what is in it?",
        documents=ctx.documents,
        session_id=ctx.session_id,
        storage=storage,
        history=[{"role": "user", "content": "what is in it?"}],
        provider_client=ScriptedProvider(lambda n, req: reply("A report.")),
    )
    assert result.to_dict() == {"response": "A report.", "operations": [], "stopReason": "completed", "rounds": 1}
