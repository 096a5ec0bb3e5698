"""Provider 抽象接口。

Agent 循环不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每种线协议实现一个 ProviderClient（AnthropicClient / OpenAICompatClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
"""

from typing import Protocol
from pdf_agent.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
      缺少凭证时必须直接抛出 ValidationError，不允许静默切换到其他 Provider。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
