"""文档、日志事件与外部协作方接口。

文档目录（document catalogue）归会话层所有，Agent 只拿到本轮的一个可追加视图：
新产生的 revised 文档会立即追加进视图，让同一轮后续的工具调用可以引用。
删除只允许通过注入的回调完成。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Sequence


DocumentKind = Literal["original", "revised"]
LogEventKind = Literal["tool_use", "tool_result", "message", "error"]


@dataclass
class Document:
    """一个 PDF 产物。

    original 只能由上传产生，Agent 永远不能删除；
    revised 只能由工具调用产生，可以被清理工具删除。
    """

    id: str
    name: str
    url: str
    kind: DocumentKind = "original"
    pages: str = "unknown"  # 页数或页码范围描述，如 "12"、"3-5"
    produced_by_tool: Optional[str] = None

    @property
    def is_revised(self) -> bool:
        return self.kind == "revised"


@dataclass
class AgentLogEvent:
    """Agent 运行过程中的一个可观察步骤，只用于前端实时展示。"""

    kind: LogEventKind
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tool: Optional[str] = None
    input: Optional[Dict[str, Any]] = None
    output: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None
    stop_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.kind,
            "timestamp": self.timestamp.isoformat(),
        }
        for key in ("tool", "input", "output", "message", "error"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.stop_reason:
            payload["stopReason"] = self.stop_reason
        return payload


@dataclass
class OperationSummary:
    """runAgentTurn 返回给 UI 的扁平操作摘要。"""

    tool_name: str
    success: bool


@dataclass
class ClearRevisedOutcome:
    deleted_count: int


@dataclass
class DeleteOutcome:
    deleted_count: int
    skipped_originals: int


ClearRevisedCallback = Callable[[], ClearRevisedOutcome]
DeleteDocumentsCallback = Callable[[List[str]], DeleteOutcome]
LogEventCallback = Callable[[AgentLogEvent], None]


@dataclass
class StoredObject:
    key: str
    url: str


class DocumentStorage(Protocol):
    """文件存储协议（本地磁盘或远程对象存储）。"""

    def put(self, session_id: str, filename: str, data: bytes, content_type: str = "application/pdf") -> StoredObject:
        ...

    def fetch(self, url: str) -> bytes:
        ...


def find_document(documents: Sequence[Document], document_id: str) -> Optional[Document]:
    for doc in documents:
        if doc.id == document_id:
            return doc
    return None
