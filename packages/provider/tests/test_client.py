"""LiteLLMClient 单元测试

Mock litellm.acompletion()，验证 generate() 返回 GenerationResult、
图片解码、空结果、错误分类和 health_check()。
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from mentionbot.core.models import PromptPart
from mentionbot.provider.client import LiteLLMClient, build_messages
from mentionbot.provider.exceptions import (
    EmptyGenerationError,
    ProviderError,
    ProxyUnreachableError,
)


@pytest.fixture
def client():
    """创建 LiteLLMClient 实例"""
    return LiteLLMClient(
        proxy_base_url="http://localhost:4000/",
        proxy_api_key="sk-test",
        model="image-gen",
        timeout_s=30,
    )


def _make_mock_response(content="Here is your cat", images=None, model="gemini-image"):
    """构造 Mock LiteLLM acompletion 返回"""
    response = MagicMock()
    response.model = model

    choice = MagicMock()
    choice.message.content = content
    choice.message.images = images
    response.choices = [choice]

    usage = MagicMock()
    usage.prompt_tokens = 12
    usage.completion_tokens = 30
    usage.total_tokens = 42
    response.usage = usage

    response._hidden_params = {
        "custom_llm_provider": "gemini",
        "response_cost": 0.04,
    }
    return response


class _NamedError(Exception):
    pass


def _error_named(name: str) -> Exception:
    return type(name, (_NamedError,), {})("rejected")


class TestBuildMessages:
    def test_system_and_multimodal_user_message(self):
        messages = build_messages(
            [
                PromptPart.of_text("hello"),
                PromptPart.of_image_url("https://img.test/a.jpg"),
                PromptPart(kind="image", data=b"abc", mime_type="image/jpeg"),
                PromptPart.of_text(""),
            ],
            "be nice",
        )

        assert messages[0] == {"role": "system", "content": "be nice"}
        content = messages[1]["content"]
        assert messages[1]["role"] == "user"
        assert content[0] == {"type": "text", "text": "hello"}
        assert content[1] == {"type": "image_url", "image_url": {"url": "https://img.test/a.jpg"}}
        assert content[2]["image_url"]["url"] == "data:image/jpeg;base64,YWJj"
        # 空文本段被丢弃
        assert len(content) == 3

    def test_no_system_instruction(self):
        messages = build_messages([PromptPart.of_text("hi")])
        assert [m["role"] for m in messages] == ["user"]


class TestLiteLLMClientGenerate:
    """generate() 方法测试"""

    async def test_generate_text_and_image(self, client, prompt_parts, png_data_url, png_bytes):
        response = _make_mock_response(
            images=[{"type": "image_url", "image_url": {"url": png_data_url}}],
        )
        with (
            patch("mentionbot.provider.client.acompletion", new=AsyncMock(return_value=response)) as mock_call,
            patch("mentionbot.provider.usage.litellm_completion_cost", side_effect=Exception("no price")),
        ):
            result = await client.generate(prompt_parts, "system prompt")

        assert result.text == "Here is your cat"
        assert len(result.media) == 1
        assert result.media[0].data == png_bytes
        assert result.media[0].mime_type == "image/png"
        assert result.model_name == "gemini-image"
        assert result.provider == "gemini"
        assert result.token_usage.total_tokens == 42
        assert result.cost_usd == pytest.approx(0.04)
        assert result.cost_unavailable is False
        assert result.is_fallback is False

        kwargs = mock_call.call_args.kwargs
        assert kwargs["model"] == "image-gen"
        assert kwargs["api_base"] == "http://localhost:4000"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["modalities"] == ["image", "text"]
        assert kwargs["messages"][0]["role"] == "system"

    async def test_text_only_response(self, client, prompt_parts):
        response = _make_mock_response(content="  just text  ")
        with (
            patch("mentionbot.provider.client.acompletion", new=AsyncMock(return_value=response)),
            patch("mentionbot.provider.usage.litellm_completion_cost", return_value=0.01),
        ):
            result = await client.generate(prompt_parts)

        assert result.text == "just text"
        assert result.media == []
        assert result.cost_usd == pytest.approx(0.01)

    async def test_empty_response_raises(self, client, prompt_parts):
        response = _make_mock_response(content="   ")
        with patch("mentionbot.provider.client.acompletion", new=AsyncMock(return_value=response)):
            with pytest.raises(EmptyGenerationError) as exc_info:
                await client.generate(prompt_parts)
        assert exc_info.value.recoverable is False

    async def test_connection_error_raises_proxy_unreachable(self, client, prompt_parts):
        with patch(
            "mentionbot.provider.client.acompletion",
            new=AsyncMock(side_effect=httpx.ConnectError("refused")),
        ):
            with pytest.raises(ProxyUnreachableError) as exc_info:
                await client.generate(prompt_parts)
        assert exc_info.value.proxy_url == "http://localhost:4000"
        assert exc_info.value.recoverable is True

    async def test_bad_request_not_recoverable(self, client, prompt_parts):
        with patch(
            "mentionbot.provider.client.acompletion",
            new=AsyncMock(side_effect=_error_named("BadRequestError")),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await client.generate(prompt_parts)
        assert not isinstance(exc_info.value, ProxyUnreachableError)
        assert exc_info.value.recoverable is False

    async def test_server_error_recoverable(self, client, prompt_parts):
        with patch(
            "mentionbot.provider.client.acompletion",
            new=AsyncMock(side_effect=_error_named("InternalServerError")),
        ):
            with pytest.raises(ProviderError) as exc_info:
                await client.generate(prompt_parts)
        assert exc_info.value.recoverable is True


class TestLiteLLMClientHealthCheck:
    async def test_health_check_ok(self, client):
        mock_resp = MagicMock(status_code=200)
        with patch("httpx.AsyncClient.get", new=AsyncMock(return_value=mock_resp)) as mock_get:
            assert await client.health_check() is True
        assert mock_get.call_args.args[0] == "http://localhost:4000/health/liveliness"

    async def test_health_check_unreachable(self, client):
        with patch(
            "httpx.AsyncClient.get",
            new=AsyncMock(side_effect=httpx.ConnectError("refused")),
        ):
            assert await client.health_check() is False
