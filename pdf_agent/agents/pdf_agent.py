"""PDF Agent 主循环。

状态机：等待回复 -> 执行工具 -> 等待回复 ... -> 完成 / 出错 / 达到轮数上限。

- 同一轮内的工具调用按模型给出的顺序逐个执行，前一个调用产生的文档立即追加到
  本轮文档视图，后面的调用可以直接引用。
- 单个工具失败只产生 success=False 的结果并回传给模型，不会中断循环。
- Provider 调用失败直接结束本轮（不重试），返回通用致歉文本。
- run_agent_turn 从不向调用方抛出异常。
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence
from uuid import uuid4

from pdf_agent.agents.conversation import HistoryEntry, TurnConversation
from pdf_agent.config.settings import settings
from pdf_agent.domain.documents import (
    AgentLogEvent,
    ClearRevisedCallback,
    DeleteDocumentsCallback,
    Document,
    DocumentStorage,
    LogEventCallback,
    OperationSummary,
)
from pdf_agent.domain.exceptions import BusinessError
from pdf_agent.domain.models import ChatMessage, ChatRequest
from pdf_agent.infrastructure.logging.logger import logger
from pdf_agent.providers import create_provider
from pdf_agent.providers.base import ProviderClient
from pdf_agent.tools.catalogue import default_tool_defs
from pdf_agent.tools.context import ToolContext
from pdf_agent.tools.definitions import ToolDef, ToolResult
from pdf_agent.tools.executor import ToolExecutor

MAX_TOOL_ROUNDS = 20
MAX_ROUNDS_TEXT = "I reached the maximum number of operations. Please start a new conversation."
EMPTY_FINAL_TEXT = "Operation completed."
APOLOGY_TEXT = "I encountered an error while processing your request. Please try again."

StopReason = Literal["completed", "max_rounds", "error"]


@dataclass
class AgentConfig:
    agent_type: str = "pdf-agent"
    provider: str = "openai"
    model: str = "pdf-agent"
    max_tool_rounds: int = MAX_TOOL_ROUNDS  # 硬上限 20
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    max_context_messages: int = 20

    def __post_init__(self):
        self.max_tool_rounds = max(1, min(MAX_TOOL_ROUNDS, int(self.max_tool_rounds)))


@dataclass
class ProviderSelection:
    """调用方选择的 Provider；api_key 为空时使用配置中的密钥。"""

    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None


@dataclass
class AgentTurnResult:
    final_text: str
    operations: List[OperationSummary] = field(default_factory=list)
    stop_reason: StopReason = "completed"
    rounds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.final_text,
            "operations": [{"toolName": op.tool_name, "success": op.success} for op in self.operations],
            "stopReason": self.stop_reason,
            "rounds": self.rounds,
        }


class PdfAgentEngine:
    def __init__(
        self,
        provider_client: ProviderClient,
        tool_executor: Optional[ToolExecutor] = None,
        tool_defs: Optional[List[ToolDef]] = None,
        config: Optional[AgentConfig] = None,
    ):
        self._provider_client = provider_client
        self._tool_executor = tool_executor or ToolExecutor()
        self._tool_defs = tool_defs if tool_defs is not None else default_tool_defs()
        self._config = config or AgentConfig()

    def run_turn(
        self,
        user_text: str,
        context: ToolContext,
        history: Optional[Sequence[HistoryEntry]] = None,
        on_log_event: Optional[LogEventCallback] = None,
    ) -> AgentTurnResult:
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "agent_type": self._config.agent_type,
            "session_id": context.session_id,
            "provider": self._config.provider,
        }
        conversation = TurnConversation(
            user_text,
            context.documents,
            history=history,
            max_context_messages=self._config.max_context_messages,
        )
        if conversation.trimmed:
            self._log(logging.INFO, "Truncated context", log_ctx, trimmed=conversation.trimmed)

        operations: List[OperationSummary] = []
        max_rounds = self._config.max_tool_rounds

        def emit(event: AgentLogEvent) -> None:
            if on_log_event is None:
                return
            try:
                on_log_event(event)
            except Exception as cb_error:
                self._log(logging.ERROR, "Log event callback failed", log_ctx, kind=event.kind, error=str(cb_error))

        for round_num in range(1, max_rounds + 1):
            self._log(logging.INFO, "Tool round", log_ctx, round=round_num, max_rounds=max_rounds)
            req = ChatRequest(
                provider=self._config.provider,
                model=self._config.model,
                messages=conversation.messages,
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                tools=self._tool_defs,
                tool_choice="auto",
            )
            try:
                reply = self._provider_client.chat(req).message
            except Exception as e:
                error = e.message if isinstance(e, BusinessError) else str(e)
                self._log(
                    logging.ERROR,
                    "Provider call failed",
                    log_ctx,
                    round=round_num,
                    error=error,
                    error_code=getattr(e, "code", type(e).__name__),
                )
                emit(AgentLogEvent(kind="error", error=error, stop_reason="error"))
                return AgentTurnResult(APOLOGY_TEXT, operations, "error", round_num)

            if not reply.tool_calls:
                final_text = reply.content or EMPTY_FINAL_TEXT
                conversation.add_assistant(ChatMessage(role="assistant", content=final_text))
                emit(AgentLogEvent(kind="message", message=final_text, stop_reason="completed"))
                self._log(
                    logging.INFO,
                    "Completed agent turn",
                    log_ctx,
                    rounds=round_num,
                    operations=len(operations),
                    elapsed_seconds=round(time.time() - start_time, 2),
                )
                return AgentTurnResult(final_text, operations, "completed", round_num)

            self._log(logging.INFO, "Executing tool calls", log_ctx, call_count=len(reply.tool_calls))
            conversation.add_assistant(reply)
            for call in reply.tool_calls:
                emit(AgentLogEvent(kind="tool_use", tool=call.name, input=call.arguments))
                self._log(
                    logging.INFO,
                    "Tool call received",
                    log_ctx,
                    tool_name=call.name,
                    tool_call_id=call.id,
                    tool_args=call.arguments,
                )
                try:
                    result = self._tool_executor.execute(call, context)
                except Exception as e:
                    self._log(logging.ERROR, "Tool execution failed", log_ctx, tool_call_id=call.id, error=str(e))
                    result = ToolResult.failure(f"Tool execution failed: {e}")
                    result.call_id = call.id
                    result.tool_name = call.name

                produced = result.produced_documents()
                context.add_documents(produced)
                if result.success:
                    emit(AgentLogEvent(kind="tool_result", tool=call.name, output=result.to_dict()))
                else:
                    emit(AgentLogEvent(kind="error", tool=call.name, error=result.error))
                self._log(
                    logging.INFO,
                    "Tool execution finished",
                    log_ctx,
                    tool_call_id=call.id,
                    success=result.success,
                    produced=[d.id for d in produced],
                )
                conversation.add_tool_result(result)
                operations.append(OperationSummary(tool_name=call.name, success=result.success))

        self._log(logging.WARNING, "Reached max tool rounds", log_ctx, max_rounds=max_rounds)
        emit(AgentLogEvent(kind="message", message=MAX_ROUNDS_TEXT, stop_reason="max_rounds"))
        return AgentTurnResult(MAX_ROUNDS_TEXT, operations, "max_rounds", max_rounds)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def run_agent_turn(
    user_text: str,
    *,
    documents: List[Document],
    session_id: str,
    storage: DocumentStorage,
    history: Optional[Sequence[HistoryEntry]] = None,
    provider_config: Optional[ProviderSelection] = None,
    on_log_event: Optional[LogEventCallback] = None,
    clear_revised_callback: Optional[ClearRevisedCallback] = None,
    delete_documents_callback: Optional[DeleteDocumentsCallback] = None,
    provider_client: Optional[ProviderClient] = None,
    tool_executor: Optional[ToolExecutor] = None,
    cfg=settings,
) -> AgentTurnResult:
    """运行一轮 PDF Agent 对话，是核心层唯一的入口。

    documents 是本轮的文档视图：新产生的 revised 文档会被原地追加，
    删除后的 revised 文档会被原地移除，调用方可在返回后据此同步会话目录。
    """

    selection = provider_config or ProviderSelection()
    provider_name = (selection.provider or cfg.default_provider).lower()
    try:
        if provider_client is None:
            provider_client = create_provider(provider_name, api_key=selection.api_key, cfg=cfg)
        engine = PdfAgentEngine(
            provider_client=provider_client,
            tool_executor=tool_executor,
            config=AgentConfig(
                provider=provider_name,
                model=selection.model or cfg.default_model,
                max_tool_rounds=cfg.max_tool_rounds,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                max_context_messages=cfg.max_context_messages,
            ),
        )
        context = ToolContext(
            documents=documents,
            session_id=session_id,
            storage=storage,
            clear_revised_callback=clear_revised_callback,
            delete_documents_callback=delete_documents_callback,
            render_dpi=cfg.render_dpi,
            check_dpi=cfg.check_dpi,
            threshold=cfg.whitespace_threshold,
        )
        return engine.run_turn(user_text, context, history=history, on_log_event=on_log_event)
    except Exception as e:
        logger.error(
            f"Agent turn failed: {e}",
            extra={"extra": {"session_id": session_id, "error": str(e)}},
        )
        if on_log_event is not None:
            try:
                on_log_event(AgentLogEvent(kind="error", error=str(e), stop_reason="error"))
            except Exception as cb_error:
                logger.error(f"Log event callback failed: {cb_error}")
        return AgentTurnResult(APOLOGY_TEXT, [], "error", 0)
