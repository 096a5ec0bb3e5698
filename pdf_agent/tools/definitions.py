"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDef / ToolParam）。
- 在 Agent 循环中保存和执行模型触发的工具调用（ToolCall / ToolResult）。

工具集合是封闭的：ToolName 枚举列出全部工具，执行器的分发表必须覆盖每一个成员。
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pdf_agent.domain.documents import Document


class ToolName(str, Enum):
    SPLIT_PDF = "split_pdf"
    COMBINE_PDFS = "combine_pdfs"
    MOVE_PAGES = "move_pages"
    ADD_WATERMARK = "add_watermark"
    ADD_PAGE_NUMBERS = "add_page_numbers"
    EXTRACT_TEXT = "extract_text"
    CHECK_MARGINS = "check_margins"
    CHECK_PAGE_NUMBER_POSITIONS = "check_page_number_positions"
    FIND_WHITESPACE = "find_whitespace"
    PREPARE_STAMP = "prepare_stamp"
    ADD_STAMP = "add_stamp"
    CLEAR_REVISED_DOCUMENTS = "clear_revised_documents"
    DELETE_DOCUMENTS = "delete_documents"

    @classmethod
    def parse(cls, name: str) -> Optional["ToolName"]:
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def input_schema(self) -> Dict[str, Any]:
        """生成 JSON-schema 形式的参数描述，两种协议共用。"""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in self.params.items():
            schema = param.schema or {"type": "string"}
            if param.description:
                schema = {**schema, "description": param.description}
            properties[name] = schema
            if param.required:
                required.append(name)
        return {"type": "object", "properties": properties, "required": required}


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。arguments 始终是结构化的 dict。"""

    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class ProducedFile:
    """一次工具调用产生的多个文件之一（例如 split_pdf 的每个分段）。"""

    id: str
    filename: str
    url: str
    pages: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "filename": self.filename, "url": self.url, "pages": self.pages}


@dataclass
class ToolResult:
    """工具执行结果。

    - payload: 工具相关的输出字段；产生单个新文档的工具必须包含 id/url/filename。
    - error: 失败时的可读错误信息，会原样回传给模型。
    - files: 产生多个新文档时的列表。
    """

    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    files: List[ProducedFile] = field(default_factory=list)
    call_id: str = ""
    tool_name: str = ""

    @classmethod
    def ok(cls, payload: Dict[str, Any], files: Optional[List[ProducedFile]] = None) -> "ToolResult":
        return cls(success=True, payload=payload, files=list(files or []))

    @classmethod
    def failure(cls, error: str, **payload: Any) -> "ToolResult":
        return cls(success=False, payload=payload, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        data.update(self.payload)
        if self.files:
            data["files"] = [f.to_dict() for f in self.files]
        if self.error:
            data["error"] = self.error
        return data

    def to_content(self) -> str:
        """序列化为 tool 消息内容（模型可见的输出）。"""

        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def produced_documents(self) -> List[Document]:
        """把本次结果中的新文档转换成 revised Document，供同轮后续调用引用。"""

        docs: List[Document] = []
        if not self.success:
            return docs
        doc_id = self.payload.get("id")
        url = self.payload.get("url")
        if doc_id and url:
            docs.append(
                Document(
                    id=str(doc_id),
                    name=str(self.payload.get("filename") or f"{self.tool_name}_result.pdf"),
                    url=str(url),
                    kind="revised",
                    pages=str(self.payload.get("pages", "unknown")),
                    produced_by_tool=self.tool_name or None,
                )
            )
        for f in self.files:
            if f.id and f.url:
                docs.append(
                    Document(
                        id=f.id,
                        name=f.filename or f"{self.tool_name}_result.pdf",
                        url=f.url,
                        kind="revised",
                        pages=f.pages,
                        produced_by_tool=self.tool_name or None,
                    )
                )
        return docs
