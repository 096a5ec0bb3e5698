"""统一的对话与结果数据模型。

本模块定义了 Agent 内部在不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant/tool）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

所有 Provider 适配器（AnthropicClient / OpenAICompatClient）都必须只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from pdf_agent.tools.definitions import ToolCall, ToolDef


# LLM 消息角色类型
Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant/tool。
    - content: 纯文本内容，只有工具调用的 assistant 消息可以为空字符串。
    - meta: 附加元数据，不直接发给 Provider，主要用于日志。
    - tool_calls: 当 role 为 "assistant" 且模型触发工具调用时，保存调用列表。
    - tool_call_id / tool_name: 当 role 为 "tool" 时，关联到发起该调用的 ToolCall。
    """

    role: Role
    content: str
    meta: Dict[str, Any] = field(default_factory=dict)
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "anthropic"
    model: str  # 逻辑模型名 "pdf-agent"，或直接给出厂商模型 ID
    messages: List[ChatMessage]
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    tools: Optional[List["ToolDef"]] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前只使用 index=0）。

    finish_reason 保留厂商原始取值（"tool_use"、"tool_calls"、"end_turn"、"stop" 等），
    Agent 循环只根据 message.tool_calls 是否为空来区分“继续调用工具”和“最终回答”。
    """

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。"""

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def message(self) -> ChatMessage:
        return self.choices[0].message

    @property
    def finish_reason(self) -> Optional[str]:
        return self.choices[0].finish_reason
