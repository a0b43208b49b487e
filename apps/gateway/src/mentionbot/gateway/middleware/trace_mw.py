"""TraceMiddleware -- 为任务路由绑定 trace_id

/api/tasks/{task_id}[/...] 路径上的 task_id（ULID，26 位）派生 trace_id，
贯穿该请求内的编排日志；pending / recent 等列表子路由不绑定。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_ULID_LENGTH = 26


def extract_task_id(path: str) -> str | None:
    parts = [p for p in path.split("/") if p]
    for i, part in enumerate(parts):
        if part == "tasks" and i + 1 < len(parts):
            candidate = parts[i + 1]
            if len(candidate) == _ULID_LENGTH and candidate.isalnum():
                return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id:
            structlog.contextvars.bind_contextvars(trace_id=f"trace-{task_id}", task_id=task_id)

        return await call_next(request)
