"""ProviderConfig 加载与生成客户端构建测试"""

import pytest
from mentionbot.provider import (
    EchoGenerationAdapter,
    FallbackManager,
    LiteLLMClient,
    ProviderConfig,
    build_generation_client,
    load_provider_config,
)

_ENV_VARS = (
    "LITELLM_PROXY_URL",
    "LITELLM_PROXY_KEY",
    "MENTIONBOT_LLM_MODE",
    "MENTIONBOT_LLM_MODEL",
    "MENTIONBOT_LLM_TIMEOUT_S",
    "MENTIONBOT_LLM_FALLBACK_ECHO",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadProviderConfig:
    def test_defaults(self):
        config = load_provider_config()
        assert config.proxy_base_url == "http://localhost:4000"
        assert config.proxy_api_key.get_secret_value() == ""
        assert config.llm_mode == "litellm"
        assert config.model == "image-gen"
        assert config.timeout_s == 600
        assert config.fallback_to_echo is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LITELLM_PROXY_URL", "http://proxy:4000")
        monkeypatch.setenv("LITELLM_PROXY_KEY", "sk-secret")
        monkeypatch.setenv("MENTIONBOT_LLM_MODE", "echo")
        monkeypatch.setenv("MENTIONBOT_LLM_MODEL", "other-model")
        monkeypatch.setenv("MENTIONBOT_LLM_TIMEOUT_S", "120")
        monkeypatch.setenv("MENTIONBOT_LLM_FALLBACK_ECHO", "true")

        config = load_provider_config()
        assert config.proxy_base_url == "http://proxy:4000"
        assert config.proxy_api_key.get_secret_value() == "sk-secret"
        assert "sk-secret" not in repr(config)
        assert config.llm_mode == "echo"
        assert config.model == "other-model"
        assert config.timeout_s == 120
        assert config.fallback_to_echo is True

    def test_invalid_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("MENTIONBOT_LLM_TIMEOUT_S", "soon")
        assert load_provider_config().timeout_s == 600


class TestBuildGenerationClient:
    def test_echo_mode(self):
        client = build_generation_client(ProviderConfig(llm_mode="echo"))
        assert isinstance(client, EchoGenerationAdapter)

    def test_litellm_mode(self):
        client = build_generation_client(ProviderConfig(llm_mode="litellm"))
        assert isinstance(client, LiteLLMClient)

    def test_litellm_with_echo_fallback(self):
        client = build_generation_client(ProviderConfig(fallback_to_echo=True))
        assert isinstance(client, FallbackManager)
