"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "pdf-agent"。
- provider_model：厂商实际提供的模型 ID。

调用方也可以直接传入厂商模型 ID（例如前端让用户选择模型），此时原样透传。"""

from dataclasses import dataclass
from typing import Dict


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]

    def resolve(self, model: str, max_tokens: int = 4096, temperature: float = 0.3) -> ModelConfig:
        """逻辑名命中则返回映射，否则把 model 当作厂商模型 ID。"""

        cfg = self.models.get(model)
        if cfg is not None:
            return cfg
        return ModelConfig(
            logical_name=model,
            provider_model=model,
            max_tokens=max_tokens,
            default_temperature=temperature,
        )


# Anthropic（Protocol A：content-block 协议）
ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    base_url="https://api.anthropic.com/v1",
    models={
        "pdf-agent": ModelConfig(
            logical_name="pdf-agent",
            provider_model="claude-opus-4-20250514",
            max_tokens=4096,
            default_temperature=0.3,
        )
    },
)

# OpenAI 兼容（Protocol B：扁平 tool message 协议）
OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "pdf-agent": ModelConfig(
            logical_name="pdf-agent",
            provider_model="gpt-4o",
            max_tokens=4096,
            default_temperature=0.3,
        )
    },
)
