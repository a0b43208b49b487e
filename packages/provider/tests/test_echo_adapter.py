"""EchoGenerationAdapter 单元测试"""

from mentionbot.core.models import PromptPart
from mentionbot.provider.echo_adapter import EchoGenerationAdapter


class TestEchoGenerationAdapter:
    async def test_echo_last_text(self):
        adapter = EchoGenerationAdapter()
        result = await adapter.generate(
            [PromptPart.of_text("first"), PromptPart.of_text("draw a cat")],
        )
        assert result.text == "Echo: draw a cat"
        assert result.media == []
        assert result.model_name == "echo"
        assert result.token_usage.total_tokens == 3 + 4

    async def test_skips_blank_and_image_parts(self):
        adapter = EchoGenerationAdapter()
        result = await adapter.generate(
            [
                PromptPart.of_text("hello"),
                PromptPart.of_image_url("https://img.test/a.jpg"),
                PromptPart.of_text("   "),
            ],
        )
        assert result.text == "Echo: hello"

    async def test_skips_section_markup(self, prompt_parts):
        result = await EchoGenerationAdapter().generate(prompt_parts)
        assert result.text == "Echo: draw this cat as pixel art"

    async def test_no_text(self):
        result = await EchoGenerationAdapter().generate([])
        assert result.text == "Echo: (empty)"
        assert result.is_empty is False

    async def test_health_check(self):
        assert await EchoGenerationAdapter().health_check() is True
