"""会话级文档目录与日志（进程内存）。

会话层是文档目录的唯一所有者；Agent 只能通过 clear_revised / delete_documents
两个入口修改它，original 文档永远不会被删除。
"""

import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence
from uuid import uuid4

from pdf_agent.domain.documents import (
    AgentLogEvent,
    ClearRevisedOutcome,
    DeleteOutcome,
    Document,
)


_SESSION_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def generate_session_id() -> str:
    return uuid4().hex


def is_valid_session_id(session_id: str) -> bool:
    return bool(session_id) and _SESSION_ID_RE.match(session_id) is not None


@dataclass
class _Session:
    documents: List[Document] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)


class InMemorySessionStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, _Session] = {}

    def _session(self, session_id: str) -> _Session:
        return self._sessions.setdefault(session_id, _Session())

    def add_document(self, session_id: str, doc: Document) -> None:
        with self._lock:
            docs = self._session(session_id).documents
            if all(d.id != doc.id for d in docs):
                docs.append(doc)

    def list_documents(self, session_id: str) -> List[Document]:
        with self._lock:
            return list(self._session(session_id).documents)

    def clear_revised(self, session_id: str) -> ClearRevisedOutcome:
        with self._lock:
            session = self._session(session_id)
            kept = [d for d in session.documents if not d.is_revised]
            deleted = len(session.documents) - len(kept)
            session.documents = kept
        return ClearRevisedOutcome(deleted_count=deleted)

    def delete_documents(self, session_id: str, document_ids: Sequence[str]) -> DeleteOutcome:
        """删除给定 id 中的 revised 文档；original 只计入 skipped，未知 id 忽略。"""

        wanted = set(document_ids)
        with self._lock:
            session = self._session(session_id)
            skipped = sum(1 for d in session.documents if d.id in wanted and not d.is_revised)
            kept = [d for d in session.documents if not (d.is_revised and d.id in wanted)]
            deleted = len(session.documents) - len(kept)
            session.documents = kept
        return DeleteOutcome(deleted_count=deleted, skipped_originals=skipped)

    def append_log(self, session_id: str, event: AgentLogEvent) -> None:
        with self._lock:
            self._session(session_id).logs.append(event.to_dict())

    def list_logs(self, session_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._session(session_id).logs)
