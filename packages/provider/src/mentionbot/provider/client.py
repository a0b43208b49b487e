"""LiteLLMClient -- LiteLLM Proxy 多模态生成调用封装

通过 litellm.acompletion() 调用 Proxy，请求同时声明 text / image 输出模态，
响应中的图片以 data URL 返回并解码为 GeneratedMedia。
"""

import base64
import time
from typing import Any

import httpx
import structlog
from litellm import acompletion
from mentionbot.core.models import PromptPart

from .exceptions import EmptyGenerationError, ProviderError, ProxyUnreachableError
from .models import GenerationResult
from .usage import UsageParser

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合（触发 ProxyUnreachableError，进而触发 FallbackManager 降级）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)

# LiteLLM 中表示请求本身非法的异常，重试无意义
_NON_RECOVERABLE_ERROR_NAMES = (
    "BadRequestError",
    "AuthenticationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ContentPolicyViolationError",
)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（Proxy 不可达）"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    return type(e).__name__ in ("APIConnectionError", "APITimeoutError", "Timeout")


def build_messages(
    parts: list[PromptPart],
    system_instruction: str | None = None,
) -> list[dict[str, Any]]:
    """把 PromptPart 列表转换为 OpenAI 兼容的多模态 messages

    文本段 -> {"type": "text"}，图片段 -> {"type": "image_url"}；
    只有原始字节的图片编码为 data URL。
    """
    content: list[dict[str, Any]] = []
    for part in parts:
        if part.kind == "text":
            if part.text:
                content.append({"type": "text", "text": part.text})
            continue
        url = part.url
        if url is None and part.data is not None:
            mime_type = part.mime_type or "image/png"
            url = f"data:{mime_type};base64,{base64.b64encode(part.data).decode('ascii')}"
        if url:
            content.append({"type": "image_url", "image_url": {"url": url}})

    messages: list[dict[str, Any]] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})
    messages.append({"role": "user", "content": content})
    return messages


class LiteLLMClient:
    """LiteLLM Proxy 客户端

    封装 litellm.acompletion() 调用，解析文本、生成图片和成本。
    """

    def __init__(
        self,
        proxy_base_url: str = "http://localhost:4000",
        proxy_api_key: str = "",
        model: str = "image-gen",
        timeout_s: int = 600,
    ) -> None:
        """
        Args:
            proxy_base_url: Proxy 基础 URL
            proxy_api_key: Proxy 访问密钥（LITELLM_PROXY_KEY）
            model: Proxy 上的模型 group 名称
            timeout_s: 请求超时（秒），图片生成耗时较长
        """
        self._proxy_base_url = proxy_base_url.rstrip("/")
        self._proxy_api_key = proxy_api_key
        self._model = model
        self._timeout_s = timeout_s

    async def generate(
        self,
        parts: list[PromptPart],
        system_instruction: str | None = None,
        **kwargs,
    ) -> GenerationResult:
        """发送多模态生成请求到 LiteLLM Proxy

        Raises:
            ProxyUnreachableError: Proxy 连接失败或超时
            EmptyGenerationError: 响应既无文本也无图片
            ProviderError: Proxy 返回错误
        """
        start_time = time.monotonic()
        messages = build_messages(parts, system_instruction)

        try:
            log.debug(
                "litellm_generate_start",
                model=self._model,
                part_count=len(parts),
            )
            response = await acompletion(
                model=self._model,
                messages=messages,
                api_base=self._proxy_base_url,
                api_key=self._proxy_api_key or "no-key",
                timeout=self._timeout_s,
                modalities=["image", "text"],
                **kwargs,
            )
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            log.error(
                "litellm_generate_failed",
                model=self._model,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            if _is_connection_error(e):
                raise ProxyUnreachableError(
                    proxy_url=self._proxy_base_url,
                    original_error=e,
                ) from e
            raise ProviderError(
                message=f"generation call failed: {e}",
                recoverable=type(e).__name__ not in _NON_RECOVERABLE_ERROR_NAMES,
            ) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        message = response.choices[0].message
        text = UsageParser.parse_text(message).strip()
        media = UsageParser.parse_media(message)
        if not text and not media:
            raise EmptyGenerationError()

        cost_usd, cost_unavailable = UsageParser.calculate_cost(response)
        model_name, provider = UsageParser.extract_model_info(response)

        log.info(
            "litellm_generate_completed",
            model=self._model,
            model_name=model_name,
            provider=provider,
            duration_ms=duration_ms,
            media_count=len(media),
            cost_usd=cost_usd,
        )
        return GenerationResult(
            text=text,
            media=media,
            model_name=model_name,
            provider=provider,
            duration_ms=duration_ms,
            token_usage=UsageParser.parse_usage(response),
            cost_usd=cost_usd,
            cost_unavailable=cost_unavailable,
        )

    async def health_check(self) -> bool:
        """检查 LiteLLM Proxy 可达性

        发送 GET {proxy_base_url}/health/liveliness，不抛出异常。
        """
        url = f"{self._proxy_base_url}/health/liveliness"
        try:
            async with httpx.AsyncClient() as http_client:
                resp = await http_client.get(url, timeout=HEALTH_CHECK_TIMEOUT_S)
                return resp.status_code == 200
        except httpx.HTTPError as e:
            log.debug("health_check_failed", url=url, error=str(e))
            return False
