"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取 system prompt 模板，
再把当前可用文档列表填进去，用于构造 ChatMessage(role="system")。
"""

from pathlib import Path
from typing import Sequence

from pdf_agent.domain.documents import Document


PROMPTS_DIR = Path(__file__).resolve().parent
NO_DOCUMENTS_LINE = "(no documents uploaded yet)"


def load_system_prompt(agent_type: str = "pdf-agent", locale: str = "en") -> str:
    """根据 Agent 类型和语言加载系统提示词模板。"""

    fname = PROMPTS_DIR / locale / f"{agent_type.replace('-', '_')}_system.md"
    return fname.read_text(encoding="utf-8")


def format_document_line(doc: Document) -> str:
    kind = "REVISED" if doc.is_revised else "original"
    return f"- {doc.id}: {doc.name} ({kind}, {doc.pages or 'unknown'} pages)"


def render_system_prompt(documents: Sequence[Document], locale: str = "en") -> str:
    lines = [format_document_line(d) for d in documents] or [NO_DOCUMENTS_LINE]
    return load_system_prompt("pdf-agent", locale).format(documents="\n".join(lines))
