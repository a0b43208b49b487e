"""UsageParser -- 从 LiteLLM 响应解析成本、token、模型信息和生成媒体

成本双通道策略: completion_cost() -> _hidden_params -> (0.0, True)。
除 parse_media 外所有方法不抛异常。
"""

import base64
import binascii
import contextlib
from typing import Any

import structlog
from litellm import completion_cost as litellm_completion_cost
from mentionbot.core.models import GeneratedMedia

from .models import TokenUsage

log = structlog.get_logger()


def _get(obj: Any, name: str, default: Any = None) -> Any:
    """兼容 dict 与属性对象两种响应形状"""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def decode_data_url(url: str) -> GeneratedMedia | None:
    """解析 data:<mime>;base64,<data> 形式的 URL，非 data URL 返回 None"""
    if not url.startswith("data:") or "," not in url:
        return None
    header, encoded = url[5:].split(",", 1)
    mime_type = header.split(";", 1)[0] or "image/png"
    try:
        data = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError):
        log.warning("generated_media_decode_failed", mime_type=mime_type)
        return None
    return GeneratedMedia(data=data, mime_type=mime_type)


class UsageParser:
    """LiteLLM 响应解析器"""

    @staticmethod
    def calculate_cost(response) -> tuple[float, bool]:
        """从 LiteLLM 响应计算 USD 成本

        Returns:
            (cost_usd, cost_unavailable) 元组
        """
        try:
            cost = litellm_completion_cost(completion_response=response)
            if cost is not None and cost >= 0:
                return float(cost), False
        except Exception as e:
            log.debug("completion_cost_failed", error=str(e))

        hidden = getattr(response, "_hidden_params", None)
        if isinstance(hidden, dict):
            cost = hidden.get("response_cost")
            if isinstance(cost, (int, float)) and cost >= 0:
                return float(cost), False

        log.warning("cost_unavailable")
        return 0.0, True

    @staticmethod
    def parse_usage(response) -> TokenUsage:
        """解析 token 使用数据，缺失时返回全零"""
        usage = getattr(response, "usage", None)
        if usage is None:
            return TokenUsage()
        return TokenUsage(
            prompt_tokens=_get(usage, "prompt_tokens", 0) or 0,
            completion_tokens=_get(usage, "completion_tokens", 0) or 0,
            total_tokens=_get(usage, "total_tokens", 0) or 0,
        )

    @staticmethod
    def extract_model_info(response) -> tuple[str, str]:
        """提取 (model_name, provider)"""
        model_name = ""
        provider = ""

        with contextlib.suppress(AttributeError, TypeError):
            model_name = getattr(response, "model", "") or ""

        hidden = getattr(response, "_hidden_params", None)
        if isinstance(hidden, dict):
            provider = hidden.get("custom_llm_provider", "") or ""

        return model_name, provider

    @staticmethod
    def parse_text(message) -> str:
        """提取回复文本；content 为多段列表时拼接其中的 text 段"""
        content = _get(message, "content")
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        texts = [
            _get(part, "text", "") or ""
            for part in content
            if _get(part, "type") == "text"
        ]
        return "".join(texts)

    @staticmethod
    def parse_media(message) -> list[GeneratedMedia]:
        """提取生成的图片

        图片可能出现在 message.images（image_url 为 data URL），
        或出现在多段 content 中的 image_url 段。
        """
        candidates: list[Any] = list(_get(message, "images") or [])
        content = _get(message, "content")
        if isinstance(content, list):
            candidates.extend(part for part in content if _get(part, "type") == "image_url")

        media: list[GeneratedMedia] = []
        for item in candidates:
            image_url = _get(item, "image_url")
            url = _get(image_url, "url") if image_url is not None else _get(item, "url")
            if not isinstance(url, str):
                continue
            decoded = decode_data_url(url)
            if decoded is not None:
                media.append(decoded)
        return media
