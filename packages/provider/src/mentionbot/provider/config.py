"""ProviderConfig -- Provider 配置加载

从环境变量加载配置，不硬编码 provider/模型名。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

from .client import LiteLLMClient
from .echo_adapter import EchoGenerationAdapter
from .fallback import FallbackManager

log = structlog.get_logger()


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        LITELLM_PROXY_URL: Proxy 地址（默认 http://localhost:4000）
        LITELLM_PROXY_KEY: Proxy 访问密钥
        MENTIONBOT_LLM_MODE: 运行模式（litellm/echo）
        MENTIONBOT_LLM_MODEL: Proxy 上的模型 group 名称
        MENTIONBOT_LLM_TIMEOUT_S: 调用超时（秒，默认 600）
        MENTIONBOT_LLM_FALLBACK_ECHO: Proxy 不可达时降级为 echo（默认关闭）
    """

    proxy_base_url: str = Field(
        default="http://localhost:4000",
        description="LiteLLM Proxy 基础 URL",
    )
    proxy_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Proxy 访问密钥（不是 LLM provider API key）",
    )
    llm_mode: Literal["litellm", "echo"] = Field(
        default="litellm",
        description="运行模式：litellm / echo",
    )
    model: str = Field(default="image-gen", description="模型 group 名称")
    timeout_s: int = Field(default=600, ge=1, description="生成调用超时（秒）")
    fallback_to_echo: bool = Field(
        default=False,
        description="Proxy 不可达时是否降级为 echo 回复",
    )


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置，非法超时值回退默认值"""
    kwargs: dict = {}

    if val := os.environ.get("LITELLM_PROXY_URL"):
        kwargs["proxy_base_url"] = val

    if val := os.environ.get("LITELLM_PROXY_KEY"):
        kwargs["proxy_api_key"] = SecretStr(val)

    if val := os.environ.get("MENTIONBOT_LLM_MODE"):
        kwargs["llm_mode"] = val

    if val := os.environ.get("MENTIONBOT_LLM_MODEL"):
        kwargs["model"] = val

    if val := os.environ.get("MENTIONBOT_LLM_FALLBACK_ECHO"):
        kwargs["fallback_to_echo"] = val.strip().lower() in ("1", "true", "yes", "on")

    if val := os.environ.get("MENTIONBOT_LLM_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="MENTIONBOT_LLM_TIMEOUT_S",
                value=val,
                fallback=600,
            )

    return ProviderConfig(**kwargs)


def build_generation_client(config: ProviderConfig):
    """按配置构建生成客户端

    echo 模式直接回显；litellm 模式在 fallback_to_echo 开启时包一层降级。
    """
    if config.llm_mode == "echo":
        return EchoGenerationAdapter()
    primary = LiteLLMClient(
        proxy_base_url=config.proxy_base_url,
        proxy_api_key=config.proxy_api_key.get_secret_value(),
        model=config.model,
        timeout_s=config.timeout_s,
    )
    if config.fallback_to_echo:
        return FallbackManager(primary=primary, fallback=EchoGenerationAdapter())
    return primary
