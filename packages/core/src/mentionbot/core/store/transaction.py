"""写事务封装

共享连接上的所有写操作都在连接级锁内执行，并在同一 SQLite 事务内
原子提交 Task 变更和对应的审计事件；任何异常都会回滚。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import aiosqlite
from ulid import ULID

from ..models.enums import TaskEventType
from ..models.event import TaskEvent
from .event_store import SqliteTaskEventStore


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """在写锁内开启事务，正常退出提交，异常或取消时回滚后重新抛出

    Args:
        conn: 共享数据库连接
        lock: StoreGroup 级写锁，保证多语句事务不会在同一连接上交错
    """
    async with lock:
        try:
            yield conn
            await conn.commit()
        except BaseException:
            # 取消（CancelledError）同样回滚
            await conn.rollback()
            raise


async def append_task_event(
    event_store: SqliteTaskEventStore,
    task_id: str,
    event_type: TaskEventType,
    ts: datetime,
    payload: dict[str, Any] | None = None,
) -> TaskEvent:
    """在当前事务内追加一条任务事件（不提交）

    调用方必须已持有写锁，task_seq 取 MAX+1。
    """
    event = TaskEvent(
        event_id=str(ULID()),
        task_id=task_id,
        task_seq=await event_store.get_next_task_seq(task_id),
        ts=ts,
        type=event_type,
        payload=payload or {},
    )
    await event_store.append_event(event)
    return event
