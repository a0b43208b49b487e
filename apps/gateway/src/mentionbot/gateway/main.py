"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 服务装配 + 周期任务 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from mentionbot.core.config import (
    get_db_path,
    get_media_dir,
    get_media_public_url,
    get_mention_poll_interval_s,
    get_scheduler_enabled,
    get_token_refresh_interval_s,
)
from mentionbot.core.store import create_store_group

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, mentions, tasks
from .services.container import build_default_services
from .services.scheduler import PeriodicJob

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 Store 与服务，关闭时停止周期任务并清理连接"""
    store_group = await create_store_group(
        get_db_path(),
        get_media_dir(),
        get_media_public_url(),
    )
    app.state.store_group = store_group

    services = build_default_services(store_group)
    app.state.services = services

    jobs: list[PeriodicJob] = []
    if get_scheduler_enabled():
        jobs = [
            PeriodicJob(
                "token_refresh",
                services.credential_refresher.refresh,
                get_token_refresh_interval_s(),
            ),
            PeriodicJob(
                "mention_poll",
                services.ingestor.poll,
                get_mention_poll_interval_s(),
            ),
        ]
        for job in jobs:
            job.start()
    app.state.jobs = jobs

    yield

    for job in jobs:
        await job.stop()
    await services.aclose()
    await store_group.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="mentionbot Gateway",
        version="0.1.0",
        description="mentionbot 提及回复任务 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(mentions.router, tags=["mentions"])
    app.include_router(health.router, tags=["health"])

    # 生成媒体对外访问（对象存储的 public_base_url 指向这里）
    media_dir = get_media_dir()
    if media_dir.exists():
        app.mount("/media", StaticFiles(directory=str(media_dir)), name="media")

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
