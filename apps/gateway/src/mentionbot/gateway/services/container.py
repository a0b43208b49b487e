"""GatewayServices -- 服务装配

lifespan、CLI 和测试共用同一套装配逻辑：给定 StoreGroup 和外部客户端，
构建限流器、凭证、阶段、编排器、派发器和摄取器。
"""

import asyncio

import structlog
from mentionbot.core.config import (
    get_claim_with_cas,
    get_rate_limit_max_requests,
    get_rate_limit_window_s,
)
from mentionbot.core.store import StoreGroup
from mentionbot.provider import build_generation_client, load_provider_config
from mentionbot.social import SocialClient, SocialConfig, TokenClient, load_social_config

from .credentials import CredentialProvider, CredentialRefresher
from .dispatcher import TaskDispatcher
from .ingestor import MentionIngestor
from .orchestrator import OrchestratorConfig, SleepFn, TaskOrchestrator
from .rate_limiter import RateLimitConfig, RateLimiter
from .stages import PipelineStages

log = structlog.get_logger()


def load_rate_limit_config() -> RateLimitConfig:
    return RateLimitConfig(
        max_requests=get_rate_limit_max_requests(),
        window_s=get_rate_limit_window_s(),
    )


def load_orchestrator_config() -> OrchestratorConfig:
    return OrchestratorConfig(claim_with_cas=get_claim_with_cas())


class GatewayServices:
    """网关进程内的服务实例组"""

    def __init__(
        self,
        store_group: StoreGroup,
        social_client,
        token_client,
        generator,
        social_config: SocialConfig,
        rate_limit_config: RateLimitConfig | None = None,
        orchestrator_config: OrchestratorConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Args:
            store_group: 共享连接的存储实例组
            social_client: 同时提供内容抓取、提及流、回复与媒体上传
            token_client: OAuth2 token 客户端
            generator: 内容生成客户端
            social_config: 凭证回退值与刷新配置
        """
        self.store_group = store_group
        self.social_client = social_client
        self.generator = generator
        self.orchestrator_config = orchestrator_config or OrchestratorConfig()

        self.rate_limiter = RateLimiter(store_group.kv_store, rate_limit_config)
        self.credential_provider = CredentialProvider(store_group.kv_store, social_config)
        self.credential_refresher = CredentialRefresher(
            store_group.kv_store,
            token_client,
            social_config,
        )
        self.stages = PipelineStages(
            store=store_group.task_store,
            content_client=social_client,
            publisher=social_client,
            rate_limiter=self.rate_limiter,
            generator=generator,
            object_store=store_group.object_store,
        )
        self.orchestrator = TaskOrchestrator(
            store=store_group.task_store,
            credentials=self.credential_provider,
            stages=self.stages,
            config=self.orchestrator_config,
            sleep=sleep,
        )
        self.dispatcher = TaskDispatcher(self.orchestrator)
        self.ingestor = MentionIngestor(
            store=store_group.task_store,
            kv_store=store_group.kv_store,
            feed=social_client,
            credentials=self.credential_provider,
            dispatcher=self.dispatcher,
        )

    async def aclose(self) -> None:
        """等待在途编排结束并关闭 HTTP 客户端（不关闭数据库连接）"""
        await self.dispatcher.drain()
        aclose = getattr(self.social_client, "aclose", None)
        if aclose is not None:
            await aclose()


def build_default_services(store_group: StoreGroup) -> GatewayServices:
    """按环境变量构建外部客户端并装配服务（lifespan 与 CLI 使用）"""
    social_config = load_social_config()
    provider_config = load_provider_config()
    services = GatewayServices(
        store_group=store_group,
        social_client=SocialClient(social_config),
        token_client=TokenClient(social_config),
        generator=build_generation_client(provider_config),
        social_config=social_config,
        rate_limit_config=load_rate_limit_config(),
        orchestrator_config=load_orchestrator_config(),
    )
    log.info(
        "gateway_services_initialized",
        llm_mode=provider_config.llm_mode,
        model=provider_config.model,
        fallback_to_echo=provider_config.fallback_to_echo,
        claim_with_cas=services.orchestrator_config.claim_with_cas,
    )
    return services
