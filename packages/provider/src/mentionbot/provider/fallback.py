"""FallbackManager -- 降级管理器

Lazy probe 策略：每次调用时先尝试 primary，Proxy 不可达时切换到 fallback。
不维护显式的"降级状态"标记。
"""

import structlog
from mentionbot.core.models import PromptPart

from .exceptions import ProviderError, ProxyUnreachableError
from .models import GenerationResult

log = structlog.get_logger()


class FallbackManager:
    """降级管理器

    降级链: LiteLLMClient -> EchoGenerationAdapter
    只有 ProxyUnreachableError 触发降级；其他 ProviderError 原样抛出，
    由编排器按 recoverable 决定是否重试。
    """

    def __init__(self, primary, fallback=None) -> None:
        """
        Args:
            primary: 主生成客户端
            fallback: 降级客户端，None 表示无降级
        """
        self._primary = primary
        self._fallback = fallback

    async def generate(
        self,
        parts: list[PromptPart],
        system_instruction: str | None = None,
        **kwargs,
    ) -> GenerationResult:
        """带降级的生成调用

        Returns:
            GenerationResult；fallback 成功时 is_fallback=True

        Raises:
            ProviderError: primary 失败且无法降级
        """
        try:
            return await self._primary.generate(parts, system_instruction, **kwargs)
        except ProxyUnreachableError as e:
            if self._fallback is None:
                raise
            primary_error = e
            log.warning("primary_unreachable_attempting_fallback", error=str(e))

        try:
            result = await self._fallback.generate(parts, system_instruction)
        except Exception as fallback_error:
            log.error(
                "both_primary_and_fallback_failed",
                primary_error=str(primary_error),
                fallback_error=str(fallback_error),
            )
            raise ProviderError(
                f"primary and fallback both failed. primary: {primary_error}; "
                f"fallback: {fallback_error}",
                recoverable=True,
            ) from fallback_error

        log.info("fallback_activated", fallback_reason=str(primary_error))
        return result.model_copy(
            update={
                "is_fallback": True,
                "fallback_reason": f"primary failed: {primary_error}",
            }
        )

    async def health_check(self) -> bool:
        return await self._primary.health_check()
