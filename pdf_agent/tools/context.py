"""工具执行上下文。

Agent 每轮把自己的文档视图、会话 id、存储和清理回调交给工具；
工具只能通过 storage 读写文件，只能通过回调修改会话的文档目录。
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from pdf_agent.domain.documents import (
    ClearRevisedCallback,
    DeleteDocumentsCallback,
    Document,
    DocumentStorage,
    StoredObject,
    find_document,
)
from pdf_agent.domain.exceptions import DocumentNotFoundError, ToolInputError


@dataclass
class ToolContext:
    documents: List[Document]
    session_id: str
    storage: DocumentStorage
    clear_revised_callback: Optional[ClearRevisedCallback] = None
    delete_documents_callback: Optional[DeleteDocumentsCallback] = None
    render_dpi: int = 150
    check_dpi: int = 72
    threshold: int = 250

    def get_document(self, document_id: str) -> Document:
        doc = find_document(self.documents, document_id)
        if doc is None:
            available = ", ".join(d.id for d in self.documents) or "none"
            raise DocumentNotFoundError(
                code="DOCUMENT_NOT_FOUND",
                message=f"Document {document_id} not found. Available documents: {available}",
                document_id=document_id,
            )
        return doc

    def load_bytes(self, document_id: str) -> bytes:
        doc = self.get_document(document_id)
        if not doc.url:
            raise ToolInputError(code="DOCUMENT_WITHOUT_URL", message=f"Document {document_id} has no URL")
        return self.storage.fetch(doc.url)

    def store_pdf(self, filename: str, data: bytes) -> StoredObject:
        return self.storage.put(self.session_id, filename, data, "application/pdf")

    def add_documents(self, docs: Iterable[Document]) -> None:
        self.documents.extend(docs)

    def remove_documents(self, ids: Iterable[str]) -> None:
        """从本轮视图中移除已删除的 revised 文档（original 永远保留）。"""

        drop = set(ids)
        self.documents[:] = [d for d in self.documents if not (d.is_revised and d.id in drop)]
