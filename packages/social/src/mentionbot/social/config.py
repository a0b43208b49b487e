"""SocialConfig -- 社交平台客户端配置加载"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class SocialConfig(BaseModel):
    """社交平台配置 -- 从环境变量加载

    环境变量:
        SOCIAL_API_BASE_URL: API 基础地址（默认 https://api.twitter.com）
        SOCIAL_TOKEN_URL: OAuth2 token 端点
        SOCIAL_ACCESS_TOKEN / SOCIAL_USER_ID: 初始凭证（KV 中无值时使用）
        SOCIAL_REFRESH_TOKEN / SOCIAL_CLIENT_ID / SOCIAL_CLIENT_SECRET: 刷新凭证
        SOCIAL_TIMEOUT_S: 请求超时（秒，默认 30）
    """

    api_base_url: str = Field(default="https://api.twitter.com")
    token_url: str = Field(default="https://api.twitter.com/2/oauth2/token")
    access_token: SecretStr = Field(default=SecretStr(""))
    user_id: str = Field(default="")
    refresh_token: SecretStr = Field(default=SecretStr(""))
    client_id: str = Field(default="")
    client_secret: SecretStr = Field(default=SecretStr(""))
    timeout_s: int = Field(default=30, ge=1)


_ENV_FIELDS = {
    "SOCIAL_API_BASE_URL": "api_base_url",
    "SOCIAL_TOKEN_URL": "token_url",
    "SOCIAL_ACCESS_TOKEN": "access_token",
    "SOCIAL_USER_ID": "user_id",
    "SOCIAL_REFRESH_TOKEN": "refresh_token",
    "SOCIAL_CLIENT_ID": "client_id",
    "SOCIAL_CLIENT_SECRET": "client_secret",
}


def load_social_config() -> SocialConfig:
    """从环境变量加载社交平台配置"""
    kwargs: dict = {}
    for env_var, field in _ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            kwargs[field] = val

    if val := os.environ.get("SOCIAL_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="SOCIAL_TIMEOUT_S",
                value=val,
                fallback=30,
            )

    return SocialConfig(**kwargs)
