"""提及轮询路由

POST /api/mentions/poll: 立即执行一次提及轮询，返回新建/已存在数量与游标。
"""

import structlog
from fastapi import APIRouter, Depends
from mentionbot.core.errors import PipelineError
from mentionbot.social import SocialAPIError
from starlette.responses import JSONResponse

from ..deps import get_services

log = structlog.get_logger()

router = APIRouter()


@router.post("/api/mentions/poll")
async def poll_mentions(services=Depends(get_services)):
    """执行一次提及轮询；凭证缺失或平台调用失败时返回 502"""
    try:
        result = await services.ingestor.poll()
    except (PipelineError, SocialAPIError) as e:
        log.warning("mention_poll_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(
            status_code=502,
            content={"error": {"code": "MENTION_POLL_FAILED", "message": str(e)}},
        )
    return result.model_dump()
