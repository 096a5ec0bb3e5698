import re
from pathlib import Path

import pytest

from pdf_agent.domain.documents import AgentLogEvent, Document
from pdf_agent.domain.exceptions import ToolInputError
from pdf_agent.infrastructure.storage.local_store import LocalDocumentStorage, sanitize_filename
from pdf_agent.infrastructure.storage.session_store import (
    InMemorySessionStore,
    generate_session_id,
    is_valid_session_id,
)


class CfgStub:
    uploads_dir = "uploads"
    public_url_prefix = "/uploads"
    http_timeout = 1.0


SID = "c" * 32


def test_session_id_helpers():
    sid = generate_session_id()
    assert is_valid_session_id(sid)
    assert not is_valid_session_id("C" * 32)
    assert not is_valid_session_id("abc")
    assert not is_valid_session_id("")


def test_store_never_deletes_originals():
    store = InMemorySessionStore()
    store.add_document(SID, Document(id="o1", name="a.pdf", url="/u/a", kind="original"))
    store.add_document(SID, Document(id="r1", name="b.pdf", url="/u/b", kind="revised"))
    store.add_document(SID, Document(id="r2", name="c.pdf", url="/u/c", kind="revised"))
    store.add_document(SID, Document(id="r2", name="dup.pdf", url="/u/d", kind="revised"))

    outcome = store.delete_documents(SID, ["o1", "r1", "missing"])
    assert (outcome.deleted_count, outcome.skipped_originals) == (1, 1)
    assert [d.id for d in store.list_documents(SID)] == ["o1", "r2"]

    cleared = store.clear_revised(SID)
    assert cleared.deleted_count == 1
    assert [d.id for d in store.list_documents(SID)] == ["o1"]


def test_sessions_are_isolated():
    store = InMemorySessionStore()
    store.add_document(SID, Document(id="o1", name="a.pdf", url="/u/a"))
    store.append_log(SID, AgentLogEvent(kind="message", message="hi", stop_reason="completed"))

    assert store.list_documents("d" * 32) == []
    assert store.list_logs("d" * 32) == []
    log = store.list_logs(SID)[0]
    assert log["type"] == "message"
    assert log["stopReason"] == "completed"


def test_local_storage_round_trip(tmp_path):
    storage = LocalDocumentStorage(root=tmp_path, cfg=CfgStub())
    stored = storage.put(SID, "../my report.pdf", b"%PDF-1.4 data")

    assert re.fullmatch(rf"sessions/{SID}/[0-9a-f]{{8}}-my_report\.pdf", stored.key)
    assert stored.url == f"/uploads/{stored.key}"
    assert (Path(tmp_path) / stored.key).read_bytes() == b"%PDF-1.4 data"
    assert storage.fetch(stored.url) == b"%PDF-1.4 data"


def test_uploads_with_same_name_do_not_overwrite(tmp_path):
    storage = LocalDocumentStorage(root=tmp_path, cfg=CfgStub())
    first = storage.put(SID, "report.pdf", b"first")
    second = storage.put(SID, "report.pdf", b"second")

    assert first.url != second.url
    assert storage.fetch(first.url) == b"first"
    assert storage.fetch(second.url) == b"second"


def test_local_storage_rejects_escaping_keys(tmp_path):
    storage = LocalDocumentStorage(root=tmp_path / "store", cfg=CfgStub())
    (tmp_path / "secret.pdf").write_bytes(b"x")
    with pytest.raises(ToolInputError):
        storage.fetch("/uploads/../secret.pdf")


def test_local_storage_fetches_remote_urls(monkeypatch, tmp_path):
    class Resp:
        status_code = 200
        content = b"remote"

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def get(self, url):
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    storage = LocalDocumentStorage(root=tmp_path, cfg=CfgStub())
    assert storage.fetch("https://files.example.com/a.pdf") == b"remote"


def test_sanitize_filename():
    assert sanitize_filename("a b/c?.pdf") == "c_.pdf"
    assert sanitize_filename("") == "document.pdf"
