"""EchoGenerationAdapter -- Echo 模式生成适配

不调用任何外部服务，把最后一段文本回显为回复。
本地开发（MENTIONBOT_LLM_MODE=echo）和 FallbackManager 的降级后备使用此适配器。
"""

import re
import time

from mentionbot.core.models import PromptPart

from .models import GenerationResult, TokenUsage

# <content> / </reference-content> 之类的分段标记
_MARKUP_RE = re.compile(r"^</?[\w-]+>$")


class EchoGenerationAdapter:
    """回声生成器：不产生媒体，只回显文本"""

    async def generate(
        self,
        parts: list[PromptPart],
        system_instruction: str | None = None,
        **kwargs,
    ) -> GenerationResult:
        start_time = time.monotonic()
        user_text = self._extract_last_text(parts)
        response_text = f"Echo: {user_text}"

        prompt_tokens = len(user_text.split())
        completion_tokens = len(response_text.split())

        return GenerationResult(
            text=response_text,
            media=[],
            model_name="echo",
            provider="echo",
            duration_ms=int((time.monotonic() - start_time) * 1000),
            token_usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    async def health_check(self) -> bool:
        return True

    @staticmethod
    def _extract_last_text(parts: list[PromptPart]) -> str:
        """最后一段非空、非分段标记的文本，无文本时返回 "(empty)" """
        for part in reversed(parts):
            if part.kind != "text" or not part.text:
                continue
            text = part.text.strip()
            if text and not _MARKUP_RE.match(text):
                return text
        return "(empty)"
