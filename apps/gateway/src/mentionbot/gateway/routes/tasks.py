"""任务路由

POST /api/tasks: 按 mention_id 幂等创建任务（201 新建 / 200 已存在）。
GET /api/tasks: 任务列表，支持 status 筛选。
GET /api/tasks/pending, /api/tasks/recent: 待处理 / 最近更新的任务。
GET /api/tasks/{task_id}: 任务详情，含审计事件。
POST /api/tasks/{task_id}/trigger: 派发一次编排（202），状态不可进入编排时 409。
"""

from fastapi import APIRouter, Depends, Query
from mentionbot.core.models import ORCHESTRATION_ENTRY_STATES, Task, TaskStatus
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_services, get_store_group

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """创建任务请求体"""

    source_content_id: str = Field(min_length=1)
    mention_id: str = Field(min_length=1)
    mention_url: str | None = None


class CreateTaskResponse(BaseModel):
    task_id: str
    status: str
    created: bool


class TaskSummary(BaseModel):
    """任务摘要（列表项）"""

    task_id: str
    source_content_id: str
    mention_id: str
    status: str
    attempts: int
    error_message: str | None
    created_at: str
    updated_at: str


class TaskListResponse(BaseModel):
    tasks: list[TaskSummary]


class TriggerResponse(BaseModel):
    task_id: str
    status: str
    dispatched: bool


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _not_found(task_id: str) -> JSONResponse:
    return _error(404, "TASK_NOT_FOUND", f"Task with id {task_id} does not exist")


def _summary(task: Task) -> TaskSummary:
    return TaskSummary(
        task_id=task.task_id,
        source_content_id=task.source_content_id,
        mention_id=task.mention_id,
        status=task.status.value,
        attempts=task.attempts,
        error_message=task.error_message,
        created_at=task.created_at.isoformat(),
        updated_at=task.updated_at.isoformat(),
    )


@router.post("/api/tasks")
async def create_task(
    body: CreateTaskRequest,
    store_group=Depends(get_store_group),
):
    """创建任务；同一 mention_id 重复提交返回已存在的任务"""
    task, created = await store_group.task_store.create_task(
        source_content_id=body.source_content_id,
        mention_id=body.mention_id,
        mention_url=body.mention_url,
    )
    return JSONResponse(
        status_code=201 if created else 200,
        content=CreateTaskResponse(
            task_id=task.task_id,
            status=task.status.value,
            created=created,
        ).model_dump(),
    )


@router.get("/api/tasks", response_model=TaskListResponse)
async def list_tasks(
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    store_group=Depends(get_store_group),
):
    """查询任务列表，按 created_at 倒序"""
    tasks = await store_group.task_store.list_tasks(status.value if status else None)
    return TaskListResponse(tasks=[_summary(t) for t in tasks])


@router.get("/api/tasks/pending", response_model=TaskListResponse)
async def list_pending_tasks(
    limit: int = Query(default=10, ge=1, le=100),
    store_group=Depends(get_store_group),
):
    """最早创建的 PENDING 任务"""
    tasks = await store_group.task_store.list_pending(limit)
    return TaskListResponse(tasks=[_summary(t) for t in tasks])


@router.get("/api/tasks/recent", response_model=TaskListResponse)
async def list_recent_tasks(
    limit: int = Query(default=10, ge=1, le=100),
    store_group=Depends(get_store_group),
):
    """最近更新的任务"""
    tasks = await store_group.task_store.list_recent(limit)
    return TaskListResponse(tasks=[_summary(t) for t in tasks])


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    store_group=Depends(get_store_group),
):
    """查询任务详情，包含审计事件"""
    task = await store_group.task_store.get_task(task_id)
    if task is None:
        return _not_found(task_id)

    events = await store_group.task_store.get_events(task_id)
    return {
        "task": task.model_dump(mode="json"),
        "events": [
            {
                "event_id": e.event_id,
                "task_seq": e.task_seq,
                "ts": e.ts.isoformat(),
                "type": e.type.value,
                "payload": e.payload,
            }
            for e in events
        ],
    }


@router.post("/api/tasks/{task_id}/trigger")
async def trigger_task(
    task_id: str,
    store_group=Depends(get_store_group),
    services=Depends(get_services),
):
    """派发一次编排

    - PENDING / FAILED：202，后台执行
    - 其他状态：409
    - 不存在：404
    """
    task = await store_group.task_store.get_task(task_id)
    if task is None:
        return _not_found(task_id)

    if task.status not in ORCHESTRATION_ENTRY_STATES:
        return _error(
            409,
            "TASK_NOT_TRIGGERABLE",
            f"Task {task_id} is {task.status.value}; only PENDING or FAILED tasks can be triggered",
        )

    services.dispatcher.dispatch(task_id)
    return JSONResponse(
        status_code=202,
        content=TriggerResponse(
            task_id=task_id,
            status=task.status.value,
            dispatched=True,
        ).model_dump(),
    )
