"""对外 API 服务模块。

提供简化的函数接口供上层应用（HTTP 路由、GUI 等）调用：
上传文档、运行一轮 PDF 对话、查询会话文档和日志。
"""

import secrets
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pdf_agent.agents.conversation import HistoryEntry
from pdf_agent.agents.pdf_agent import ProviderSelection, run_agent_turn
from pdf_agent.config.settings import settings
from pdf_agent.domain.documents import (
    AgentLogEvent,
    ClearRevisedOutcome,
    DeleteOutcome,
    Document,
    DocumentStorage,
)
from pdf_agent.domain.exceptions import ValidationError
from pdf_agent.infrastructure.logging.logger import logger
from pdf_agent.infrastructure.storage.local_store import LocalDocumentStorage
from pdf_agent.infrastructure.storage.session_store import InMemorySessionStore, is_valid_session_id
from pdf_agent.pdf.operations import page_count
from pdf_agent.providers.base import ProviderClient


def document_to_dict(doc: Document) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "name": doc.name,
        "url": doc.url,
        "type": doc.kind,
        "pages": doc.pages,
    }


def _check_session(session_id: str) -> None:
    if not is_valid_session_id(session_id):
        raise ValidationError(code="INVALID_SESSION_ID", message=f"Invalid session id: {session_id!r}")


class PdfChatService:
    """把会话目录、文件存储和 Agent 单轮入口串起来。"""

    def __init__(
        self,
        store: Optional[InMemorySessionStore] = None,
        storage: Optional[DocumentStorage] = None,
        provider_client: Optional[ProviderClient] = None,
    ):
        self.store = store or InMemorySessionStore()
        self.storage = storage or LocalDocumentStorage()
        self._provider_client = provider_client

    def upload_document(self, session_id: str, filename: str, data: bytes) -> Dict[str, Any]:
        _check_session(session_id)
        pages = page_count(data)
        stored = self.storage.put(session_id, filename, data, "application/pdf")
        doc = Document(
            id=secrets.token_hex(8),
            name=Path(filename).name or "document.pdf",
            url=stored.url,
            kind="original",
            pages=str(pages),
        )
        self.store.add_document(session_id, doc)
        logger.info(
            "Uploaded document",
            extra={"extra": {"session_id": session_id, "document_id": doc.id, "pages": pages}},
        )
        return document_to_dict(doc)

    def run_pdf_chat(
        self,
        session_id: str,
        user_text: str,
        history: Optional[Sequence[HistoryEntry]] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """运行一轮对话。

        Agent 拿到的是会话文档的一份视图；本轮产生且未被删除的 revised 文档
        在结束后登记进会话目录。清理回调对“本轮刚产生、尚未登记”的文档同样生效。
        """

        _check_session(session_id)
        view: List[Document] = self.store.list_documents(session_id)
        registered = {d.id for d in view}

        def turn_only_revised(ids: Optional[Sequence[str]] = None) -> List[str]:
            return [
                d.id
                for d in view
                if d.is_revised and d.id not in registered and (ids is None or d.id in ids)
            ]

        def clear_revised() -> ClearRevisedOutcome:
            pending = len(turn_only_revised())
            outcome = self.store.clear_revised(session_id)
            return ClearRevisedOutcome(deleted_count=outcome.deleted_count + pending)

        def delete_documents(document_ids: List[str]) -> DeleteOutcome:
            pending = len(turn_only_revised(set(document_ids)))
            outcome = self.store.delete_documents(session_id, document_ids)
            return DeleteOutcome(
                deleted_count=outcome.deleted_count + pending,
                skipped_originals=outcome.skipped_originals,
            )

        def record(event: AgentLogEvent) -> None:
            self.store.append_log(session_id, event)

        result = run_agent_turn(
            user_text,
            documents=view,
            session_id=session_id,
            storage=self.storage,
            history=history,
            provider_config=ProviderSelection(provider=provider, model=model, api_key=api_key),
            on_log_event=record,
            clear_revised_callback=clear_revised,
            delete_documents_callback=delete_documents,
            provider_client=self._provider_client,
        )

        for doc in turn_only_revised():
            self.store.add_document(session_id, doc)

        payload = result.to_dict()
        payload["sessionId"] = session_id
        payload["documents"] = [document_to_dict(d) for d in self.store.list_documents(session_id)]
        return payload

    def list_documents(self, session_id: str) -> List[Dict[str, Any]]:
        _check_session(session_id)
        return [document_to_dict(d) for d in self.store.list_documents(session_id)]

    def get_logs(self, session_id: str) -> List[Dict[str, Any]]:
        _check_session(session_id)
        return self.store.list_logs(session_id)


_service: Optional[PdfChatService] = None


def get_default_service() -> PdfChatService:
    """获取默认的服务实例（单例）。"""
    global _service
    if _service is None:
        _service = PdfChatService(storage=LocalDocumentStorage(root=settings.uploads_dir))
    return _service


def upload_document(session_id: str, filename: str, data: bytes) -> Dict[str, Any]:
    try:
        return get_default_service().upload_document(session_id, filename, data)
    except Exception as e:
        logger.error(f"Upload failed: {e}", extra={"extra": {"session_id": session_id, "error": str(e)}})
        raise


def run_pdf_chat(
    session_id: str,
    user_text: str,
    history: Optional[Sequence[HistoryEntry]] = None,
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """运行 PDF 对话。

    Args:
        session_id: 会话ID（32 位小写十六进制）
        user_text: 用户输入内容
        history: 历史消息列表，最后一条应为本轮输入
        provider: Provider 名称（anthropic / openai，可选）
        api_key: 覆盖配置中的 API 密钥（可选）
        model: 模型名（可选）

    Returns:
        包含回复文本、操作摘要、停止原因和当前文档列表的字典
    """
    return get_default_service().run_pdf_chat(
        session_id, user_text, history=history, provider=provider, api_key=api_key, model=model
    )


def list_documents(session_id: str) -> List[Dict[str, Any]]:
    return get_default_service().list_documents(session_id)


def get_logs(session_id: str) -> List[Dict[str, Any]]:
    return get_default_service().get_logs(session_id)
