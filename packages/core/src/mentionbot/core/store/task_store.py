"""TaskStore SQLite 实现

tasks 表每行对应一个 Task。所有变更在 StoreGroup 级写锁内执行，
并与对应的 task_events 审计事件在同一事务内提交。
读取不存在的行返回 None，对不存在 task_id 的更新为 no-op。
"""

import asyncio
import json
from datetime import UTC, datetime

import aiosqlite
import structlog
from ulid import ULID

from ..errors import InvalidTransitionError, TaskStatusConflictError
from ..models.enums import TaskEventType, TaskStatus, validate_status_write
from ..models.event import TaskEvent
from ..models.task import MediaItem, ReferencedContent, Task, UserInfo
from .event_store import SqliteTaskEventStore
from .transaction import append_task_event, write_transaction

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _dump_models(items: list[MediaItem] | list[ReferencedContent]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items], ensure_ascii=False)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        event_store: SqliteTaskEventStore,
        write_lock: asyncio.Lock,
    ) -> None:
        self._conn = conn
        self._events = event_store
        self._lock = write_lock

    async def create_task(
        self,
        source_content_id: str,
        mention_id: str,
        mention_url: str | None = None,
    ) -> tuple[Task, bool]:
        """按 mention_id 幂等创建任务

        Returns:
            (task, created)：已存在时返回原任务且 created=False，
            第二次调用传入的 source_content_id 被忽略
        """
        existing = await self.get_task_by_mention_id(mention_id)
        if existing is not None:
            return existing, False

        now = _utcnow()
        task = Task(
            task_id=str(ULID()),
            source_content_id=source_content_id,
            mention_id=mention_id,
            mention_url=mention_url,
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            async with write_transaction(self._conn, self._lock):
                await self._conn.execute(
                    """
                    INSERT INTO tasks (task_id, source_content_id, mention_id, mention_url,
                                       status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        task.task_id,
                        task.source_content_id,
                        task.mention_id,
                        task.mention_url,
                        task.status.value,
                        task.created_at.isoformat(),
                        task.updated_at.isoformat(),
                    ),
                )
                await append_task_event(
                    self._events,
                    task.task_id,
                    TaskEventType.TASK_CREATED,
                    now,
                    {
                        "source_content_id": source_content_id,
                        "mention_id": mention_id,
                    },
                )
        except aiosqlite.IntegrityError:
            # 并发插入输掉 UNIQUE 竞争：回读已存在的行
            existing = await self.get_task_by_mention_id(mention_id)
            if existing is None:
                raise
            log.info("task_create_race_resolved", mention_id=mention_id, task_id=existing.task_id)
            return existing, False

        return task, True

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def get_task_by_mention_id(self, mention_id: str) -> Task | None:
        """根据 mention_id 查询任务（去重入口）"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE mention_id = ?",
            (mention_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_by_source_content(self, source_content_id: str) -> list[Task]:
        """同一原始内容下的所有任务，按 created_at 正序"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE source_content_id = ? ORDER BY created_at ASC",
            (source_content_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_tasks(self, status: str | None = None) -> list[Task]:
        """查询任务列表，支持按状态筛选，按 created_at 倒序"""
        if status:
            cursor = await self._conn.execute(
                "SELECT * FROM tasks WHERE status = ? ORDER BY created_at DESC",
                (status,),
            )
        else:
            cursor = await self._conn.execute("SELECT * FROM tasks ORDER BY created_at DESC")
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_pending(self, limit: int = 10) -> list[Task]:
        """最早创建的 PENDING 任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE status = ? ORDER BY created_at ASC LIMIT ?",
            (TaskStatus.PENDING.value, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_recent(self, limit: int = 10) -> list[Task]:
        """最近更新的任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks ORDER BY updated_at DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: str | None = None,
        expected_status: TaskStatus | None = None,
        reason: str = "",
    ) -> Task | None:
        """更新任务状态

        进入 FAILED 时 attempts 恰好加 1；error_message 为 None 时保留原值。
        给定 expected_status 时为条件写，存储中的状态不一致则抛出
        TaskStatusConflictError 且不做任何写入。
        目标状态不是合法后继时抛出 InvalidTransitionError，同样不写入。

        Returns:
            更新后的任务；task_id 不存在时返回 None
        """
        async with write_transaction(self._conn, self._lock):
            current = await self.get_task(task_id)
            if current is None:
                return None
            if expected_status is not None and current.status != expected_status:
                raise TaskStatusConflictError(task_id, expected_status, current.status)
            self._check_write(current, status)

            attempts = current.attempts + (1 if status == TaskStatus.FAILED else 0)
            message = error_message if error_message is not None else current.error_message
            now = self._next_timestamp(current)
            await self._conn.execute(
                """
                UPDATE tasks
                SET status = ?, attempts = ?, error_message = ?, updated_at = ?
                WHERE task_id = ?
                """,
                (status.value, attempts, message, now.isoformat(), task_id),
            )
            await append_task_event(
                self._events,
                task_id,
                TaskEventType.STATE_TRANSITION,
                now,
                {
                    "from_status": current.status.value,
                    "to_status": status.value,
                    "reason": reason or (error_message or ""),
                    "attempts": attempts,
                },
            )
        return await self.get_task(task_id)

    async def update_source_content(
        self,
        task_id: str,
        text: str | None,
        media: list[MediaItem],
        user: UserInfo | None,
        references: list[ReferencedContent] | None = None,
    ) -> Task | None:
        """写入 fetch 阶段抓取到的原文、媒体、请求者与引用内容"""
        references = references or []
        async with write_transaction(self._conn, self._lock):
            current = await self.get_task(task_id)
            if current is None:
                return None
            now = self._next_timestamp(current)
            await self._conn.execute(
                """
                UPDATE tasks
                SET source_text = ?, source_media = ?, source_references = ?,
                    source_user = ?, updated_at = ?
                WHERE task_id = ?
                """,
                (
                    text,
                    _dump_models(media),
                    _dump_models(references),
                    user.model_dump_json() if user is not None else None,
                    now.isoformat(),
                    task_id,
                ),
            )
            await append_task_event(
                self._events,
                task_id,
                TaskEventType.SOURCE_FETCHED,
                now,
                {
                    "media_count": len(media),
                    "reference_count": len(references),
                    "user_id": user.id if user is not None else None,
                },
            )
        return await self.get_task(task_id)

    async def update_result(
        self,
        task_id: str,
        reply_text: str | None,
        media_urls: list[str],
        response_id: str | None,
    ) -> Task | None:
        """记录生成结果与已发布回复 ID，状态置为 COMPLETED

        仅 GENERATING 可写入结果，保证带 response_id 的任务一定是 COMPLETED。
        """
        async with write_transaction(self._conn, self._lock):
            current = await self.get_task(task_id)
            if current is None:
                return None
            self._check_write(current, TaskStatus.COMPLETED)
            now = self._next_timestamp(current)
            await self._conn.execute(
                """
                UPDATE tasks
                SET status = ?, reply_text = ?, result_media = ?, response_id = ?,
                    updated_at = ?
                WHERE task_id = ?
                """,
                (
                    TaskStatus.COMPLETED.value,
                    reply_text,
                    json.dumps(media_urls, ensure_ascii=False),
                    response_id,
                    now.isoformat(),
                    task_id,
                ),
            )
            await append_task_event(
                self._events,
                task_id,
                TaskEventType.RESULT_RECORDED,
                now,
                {
                    "from_status": current.status.value,
                    "to_status": TaskStatus.COMPLETED.value,
                    "response_id": response_id,
                    "media_count": len(media_urls),
                },
            )
        return await self.get_task(task_id)

    async def get_events(self, task_id: str) -> list[TaskEvent]:
        """任务的审计事件，按 task_seq 正序"""
        return await self._events.get_events_for_task(task_id)

    @staticmethod
    def _check_write(current: Task, status: TaskStatus) -> None:
        if not validate_status_write(current.status, status):
            log.warning(
                "task_transition_rejected",
                task_id=current.task_id,
                from_status=current.status.value,
                to_status=status.value,
            )
            raise InvalidTransitionError(current.task_id, current.status, status)

    @staticmethod
    def _next_timestamp(current: Task) -> datetime:
        """updated_at 不回退：时钟回拨时沿用上一次的时间"""
        now = _utcnow()
        return now if now > current.updated_at else current.updated_at

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        source_user = json.loads(row["source_user"]) if row["source_user"] else None
        return Task(
            task_id=row["task_id"],
            source_content_id=row["source_content_id"],
            mention_id=row["mention_id"],
            mention_url=row["mention_url"],
            status=TaskStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            attempts=row["attempts"],
            error_message=row["error_message"],
            source_text=row["source_text"],
            source_media=[MediaItem(**m) for m in json.loads(row["source_media"])],
            source_references=[
                ReferencedContent(**r) for r in json.loads(row["source_references"])
            ],
            source_user=UserInfo(**source_user) if source_user else None,
            result_media=json.loads(row["result_media"]),
            reply_text=row["reply_text"],
            response_id=row["response_id"],
        )
