import pytest

from pdf_agent.domain.exceptions import ValidationError
from pdf_agent.providers import create_provider
from pdf_agent.providers.anthropic_client import AnthropicClient
from pdf_agent.providers.openai_client import OpenAICompatClient
from pdf_agent.providers.registry import ANTHROPIC_CONFIG, OPENAI_CONFIG


class DummySettings:
    default_provider = "anthropic"
    anthropic_api_key = None
    openai_api_key = None
    http_timeout = 1.0


def test_create_provider_default():
    provider = create_provider(cfg=DummySettings())
    assert isinstance(provider, AnthropicClient)


def test_create_provider_explicit():
    provider = create_provider("OpenAI", cfg=DummySettings())
    assert isinstance(provider, OpenAICompatClient)


def test_create_provider_unknown():
    with pytest.raises(ValidationError) as exc:
        create_provider("mistral", cfg=DummySettings())
    assert exc.value.code == "UNKNOWN_PROVIDER"


def test_provider_configs_resolve_logical_and_explicit_models():
    assert ANTHROPIC_CONFIG.resolve("pdf-agent").provider_model.startswith("claude")
    assert OPENAI_CONFIG.resolve("pdf-agent").provider_model == "gpt-4o"
    explicit = ANTHROPIC_CONFIG.resolve("claude-3-5-haiku-latest", max_tokens=512)
    assert explicit.provider_model == "claude-3-5-haiku-latest"
    assert explicit.max_tokens == 512
