"""单轮对话的消息序列管理。

负责：
- 构造 system prompt（可用文档列表 + 清理策略）；
- 回放历史消息（角色映射，排除最后一条，即本轮输入）并裁剪到 max_context_messages；
- 记录 assistant 的工具调用和 tool 结果，保证每个结果都对应上一条 assistant 消息中待回答的调用。
"""

from typing import Any, List, Mapping, Optional, Sequence

from pdf_agent.domain.documents import Document
from pdf_agent.domain.exceptions import MessageSequenceError
from pdf_agent.domain.models import ChatMessage
from pdf_agent.prompts import render_system_prompt
from pdf_agent.tools.definitions import ToolResult


HistoryEntry = Mapping[str, Any]


class TurnConversation:
    def __init__(
        self,
        user_text: str,
        documents: Sequence[Document],
        history: Optional[Sequence[HistoryEntry]] = None,
        max_context_messages: int = 20,
    ):
        self._messages: List[ChatMessage] = [ChatMessage(role="system", content=render_system_prompt(documents))]
        self._pending: List[str] = []

        replay = list(history or [])[:-1]
        self.trimmed = max(0, len(replay) - max_context_messages)
        if self.trimmed:
            replay = replay[-max_context_messages:]
        for entry in replay:
            role = "user" if entry.get("role") == "user" else "assistant"
            self._messages.append(ChatMessage(role=role, content=str(entry.get("content") or "")))
        self._messages.append(ChatMessage(role="user", content=user_text))

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @property
    def pending_call_ids(self) -> List[str]:
        return list(self._pending)

    def add_assistant(self, message: ChatMessage) -> None:
        """追加 assistant 消息；工具调用原样保留（不改动调用 id）。"""

        calls = list(message.tool_calls or [])
        self._messages.append(
            ChatMessage(role="assistant", content=message.content or "", tool_calls=calls or None)
        )
        self._pending = [c.id for c in calls]

    def add_tool_result(self, result: ToolResult) -> None:
        if result.call_id not in self._pending:
            raise MessageSequenceError(
                code="UNEXPECTED_TOOL_RESULT",
                message=f"Tool call {result.call_id!r} is not pending on the last assistant message",
                tool_call_id=result.call_id,
            )
        self._pending.remove(result.call_id)
        self._messages.append(
            ChatMessage(
                role="tool",
                content=result.to_content(),
                tool_call_id=result.call_id,
                tool_name=result.tool_name,
                meta={"is_error": not result.success},
            )
        )
