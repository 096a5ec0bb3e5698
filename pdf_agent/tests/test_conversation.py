import pytest

from pdf_agent.agents.conversation import TurnConversation
from pdf_agent.domain.documents import Document
from pdf_agent.domain.exceptions import MessageSequenceError
from pdf_agent.domain.models import ChatMessage
from pdf_agent.tools.definitions import ToolCall, ToolResult


DOCS = [
    Document(id="d1", name="report.pdf", url="/uploads/a", kind="original", pages="12"),
    Document(id="r1", name="report_stamped.pdf", url="/uploads/b", kind="revised", pages="12"),
]


def test_system_prompt_lists_documents():
    conv = TurnConversation("hello", DOCS)
    system = conv.messages[0]
    assert system.role == "system"
    assert "- d1: report.pdf (original, 12 pages)" in system.content
    assert "- r1: report_stamped.pdf (REVISED, 12 pages)" in system.content


def test_system_prompt_without_documents():
    conv = TurnConversation("hello", [])
    assert "no documents uploaded yet" in conv.messages[0].content


def test_history_replay_excludes_current_input_and_maps_roles():
    history = [
        {"role": "user", "content": "split it"},
        {"role": "bot", "content": "done"},
        {"role": "user", "content": "now stamp it"},
    ]
    conv = TurnConversation("now stamp it", DOCS, history=history)

    msgs = conv.messages
    assert [m.role for m in msgs] == ["system", "user", "assistant", "user"]
    assert msgs[2].content == "done"
    assert msgs[-1].content == "now stamp it"
    assert conv.trimmed == 0


def test_history_is_trimmed_to_most_recent():
    history = [{"role": "user", "content": f"m{i}"} for i in range(10)]
    conv = TurnConversation("last", [], history=history, max_context_messages=3)

    assert conv.trimmed == 6
    assert [m.content for m in conv.messages[1:]] == ["m6", "m7", "m8", "last"]


def test_tool_results_must_answer_pending_calls():
    conv = TurnConversation("go", DOCS)
    call = ToolCall(id="c1", name="extract_text", arguments={"documentId": "d1"})
    conv.add_assistant(ChatMessage(role="assistant", content="", tool_calls=[call]))
    assert conv.pending_call_ids == ["c1"]

    stray = ToolResult.ok({"text": "x"})
    stray.call_id = "c9"
    with pytest.raises(MessageSequenceError):
        conv.add_tool_result(stray)

    failed = ToolResult.failure("boom")
    failed.call_id = "c1"
    failed.tool_name = "extract_text"
    conv.add_tool_result(failed)

    last = conv.messages[-1]
    assert last.role == "tool"
    assert last.tool_call_id == "c1"
    assert last.meta["is_error"] is True
    assert '"error": "boom"' in last.content
    assert conv.pending_call_ids == []
