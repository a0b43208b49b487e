"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、媒体目录、磁盘空间；
            profile=llm/full 时额外探测生成服务。
"""

import shutil

import aiosqlite
import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="core（默认）仅核心检查；llm/full 包含生成服务健康检查",
    ),
):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. media_dir: 媒体目录可访问性
    3. disk_space_mb: 磁盘剩余空间
    4. generator: 根据 profile 决定是否探测
    """
    effective_profile = profile or "core"
    store_group = request.app.state.store_group

    checks: dict[str, object] = {}
    all_ok = True

    try:
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except (aiosqlite.Error, ValueError) as e:
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    media_dir = store_group.object_store.media_dir
    if media_dir.exists() and media_dir.is_dir():
        checks["media_dir"] = "ok"
    else:
        checks["media_dir"] = "error: directory does not exist"
        all_ok = False

    try:
        checks["disk_space_mb"] = shutil.disk_usage(media_dir if media_dir.exists() else "/").free // (
            1024 * 1024
        )
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    if effective_profile in ("llm", "full"):
        services = getattr(request.app.state, "services", None)
        generator = services.generator if services is not None else None
        health_check = getattr(generator, "health_check", None)
        if health_check is None:
            checks["generator"] = "skipped"
        elif await health_check():
            checks["generator"] = "ok"
        else:
            log.warning("generator_unreachable")
            checks["generator"] = "unreachable"
            all_ok = False
    else:
        checks["generator"] = "skipped"

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "profile": effective_profile,
            "checks": checks,
        },
    )
