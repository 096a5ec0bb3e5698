"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供两种线协议的具体实现 (anthropic_client、openai_client)。
"""

from typing import Optional

from pdf_agent.config.settings import settings
from pdf_agent.domain.exceptions import ValidationError
from pdf_agent.providers.base import ProviderClient
from pdf_agent.providers.anthropic_client import AnthropicClient
from pdf_agent.providers.openai_client import OpenAICompatClient


def create_provider(name: Optional[str] = None, api_key: Optional[str] = None, cfg=settings) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    api_key 由调用方（例如前端传入的用户密钥）显式给出时优先使用；
    选中的协议缺少凭证时不会退回到另一个 Provider。
    """

    provider_name = (name or getattr(cfg, "default_provider", "openai")).lower()
    if provider_name == "anthropic":
        return AnthropicClient(cfg, api_key=api_key)
    if provider_name == "openai":
        return OpenAICompatClient(cfg, api_key=api_key)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {name!r}")
