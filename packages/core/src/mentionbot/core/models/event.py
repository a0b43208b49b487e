"""TaskEvent Domain Model

task_events 表 append-only，不允许更新或删除。
event_id 使用 ULID 格式，时间有序；task_seq 同一 task 内严格单调递增。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import TaskEventType, TaskStatus


class TaskEvent(BaseModel):
    """任务审计事件，与它描述的任务变更在同一事务内写入"""

    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    task_id: str = Field(description="关联的 Task ID")
    task_seq: int = Field(description="任务内序号，严格单调递增")
    ts: datetime = Field(description="事件时间戳")
    type: TaskEventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = Field(default="")
    attempts: int = Field(default=0)
