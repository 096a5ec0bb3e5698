import json
import re

import pytest

from pdf_agent.api.service import PdfChatService
from pdf_agent.domain.exceptions import ToolInputError, ValidationError
from pdf_agent.domain.models import ChatChoice, ChatMessage, ChatResult
from pdf_agent.infrastructure.storage.local_store import LocalDocumentStorage
from pdf_agent.infrastructure.storage.session_store import InMemorySessionStore
from pdf_agent.tests.conftest import make_pdf, page_texts
from pdf_agent.tools.definitions import ToolCall

SID = "e" * 32


class ScriptedProvider:
    name = "stub"

    def __init__(self, script):
        self._script = script
        self.calls = 0

    def chat(self, req):
        self.calls += 1
        return ChatResult(provider="stub", model=req.model, choices=[ChatChoice(index=0, message=self._script(self.calls, req))])


def _service(storage, script):
    return PdfChatService(store=InMemorySessionStore(), storage=storage, provider_client=ScriptedProvider(script))


def _original_id(req):
    return re.search(r"- (\w+): report\.pdf \(original", req.messages[0].content).group(1)


def _last_tool_output(req):
    return json.loads(req.messages[-1].content)


def test_upload_registers_original(storage):
    service = _service(storage, lambda n, req: ChatMessage(role="assistant", content="hi"))
    doc = service.upload_document(SID, "report.pdf", make_pdf(3))

    assert doc["type"] == "original"
    assert doc["pages"] == "3"
    assert service.list_documents(SID) == [doc]


def test_uploads_sharing_a_filename_keep_their_own_bytes(tmp_path):
    class CfgStub:
        uploads_dir = "uploads"
        public_url_prefix = "/uploads"
        http_timeout = 1.0

    local = LocalDocumentStorage(root=tmp_path, cfg=CfgStub())
    service = _service(local, lambda n, req: ChatMessage(role="assistant", content="hi"))
    first = service.upload_document(SID, "report.pdf", make_pdf(1))
    second = service.upload_document(SID, "report.pdf", make_pdf(4))

    assert first["url"] != second["url"]
    assert len(page_texts(local.fetch(first["url"]))) == 1
    assert len(page_texts(local.fetch(second["url"]))) == 4


def test_upload_rejects_non_pdf(storage):
    service = _service(storage, lambda n, req: ChatMessage(role="assistant", content="hi"))
    with pytest.raises(ToolInputError):
        service.upload_document(SID, "notes.txt", b"plain text")


def test_invalid_session_id(storage):
    service = _service(storage, lambda n, req: ChatMessage(role="assistant", content="hi"))
    with pytest.raises(ValidationError):
        service.run_pdf_chat("not-a-session", "hi")


def test_chat_registers_produced_documents_and_logs(storage):
    def script(n, req):
        if n == 1:
            original = _original_id(req)
            return ChatMessage(
                role="assistant",
                content="",
                tool_calls=[ToolCall(id="c1", name="move_pages", arguments={"documentId": original, "pageOrder": [2, 1]})],
            )
        return ChatMessage(role="assistant", content="Reordered.")

    service = _service(storage, script)
    service.upload_document(SID, "report.pdf", make_pdf(2))

    out = service.run_pdf_chat(SID, "swap the pages")

    assert out["response"] == "Reordered."
    assert out["operations"] == [{"toolName": "move_pages", "success": True}]
    assert [d["type"] for d in out["documents"]] == ["original", "revised"]
    assert [log["type"] for log in service.get_logs(SID)] == ["tool_use", "tool_result", "message"]


def test_documents_deleted_in_same_turn_are_not_registered(storage):
    def script(n, req):
        if n == 1:
            original = _original_id(req)
            return ChatMessage(
                role="assistant",
                content="",
                tool_calls=[ToolCall(id="c1", name="combine_pdfs", arguments={"documentIds": [original, original]})],
            )
        if n == 2:
            produced = _last_tool_output(req)["id"]
            return ChatMessage(
                role="assistant",
                content="",
                tool_calls=[ToolCall(id="c2", name="delete_documents", arguments={"documentIds": [produced]})],
            )
        return ChatMessage(role="assistant", content=json.dumps(_last_tool_output(req)))

    service = _service(storage, script)
    service.upload_document(SID, "report.pdf", make_pdf(1))

    out = service.run_pdf_chat(SID, "combine then delete")

    assert json.loads(out["response"])["deletedCount"] == 1
    assert [d["type"] for d in out["documents"]] == ["original"]


def test_clear_revised_keeps_originals(storage):
    def first(n, req):
        if n == 1:
            original = _original_id(req)
            return ChatMessage(
                role="assistant",
                content="",
                tool_calls=[ToolCall(id="c1", name="add_watermark", arguments={"documentId": original, "text": "DRAFT"})],
            )
        return ChatMessage(role="assistant", content="Watermarked.")

    service = _service(storage, first)
    service.upload_document(SID, "report.pdf", make_pdf(1))
    service.run_pdf_chat(SID, "watermark it")
    assert len(service.list_documents(SID)) == 2

    def second(n, req):
        if n == 1:
            return ChatMessage(role="assistant", content="", tool_calls=[ToolCall(id="c1", name="clear_revised_documents", arguments={})])
        return ChatMessage(role="assistant", content="Cleared.")

    service._provider_client = ScriptedProvider(second)
    out = service.run_pdf_chat(SID, "start over")

    assert out["response"] == "Cleared."
    assert [d["type"] for d in out["documents"]] == ["original"]
