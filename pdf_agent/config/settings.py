"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("PDF_AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="openai",
        description="默认使用的 Provider 名称：anthropic 或 openai（OpenAI 兼容协议）",
    )
    default_model: str = Field(
        default="pdf-agent",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )

    # Anthropic（content-block 协议）
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com/v1",
        description="Anthropic API 基础URL",
    )
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    # OpenAI 兼容（扁平 tool message 协议）
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI 兼容服务 API 密钥")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI 兼容服务基础URL",
    )

    http_timeout: float = Field(default=120.0, ge=1.0, description="HTTP 超时时间（秒）")
    max_tokens: int = Field(default=4096, ge=1, description="单次回复最大 token 数")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="生成温度")
    max_context_messages: int = Field(default=20, ge=1, le=100, description="回放的最大历史消息数")
    max_tool_rounds: int = Field(
        default=20,
        ge=1,
        le=20,
        description="单轮对话内工具调用最大轮数（硬上限 20）",
    )

    # ---- 存储 ----
    uploads_dir: str = Field(default="uploads", description="本地文件存储根目录")
    public_url_prefix: str = Field(default="/uploads", description="本地文件对外 URL 前缀")

    # ---- 栅格化 / 空白检测 ----
    render_dpi: int = Field(default=150, ge=36, le=600, description="find_whitespace 栅格化分辨率")
    check_dpi: int = Field(default=72, ge=36, le=600, description="页边距 / 页码位检测分辨率")
    whitespace_threshold: int = Field(default=250, ge=0, le=255, description="亮度 >= 该值视为空白")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("anthropic_api_key", "openai_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _load_config_from_yaml,
            file_secret_settings,
        )


settings = Settings()
