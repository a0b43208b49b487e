"""Store Protocol 接口定义

定义 TaskStore、KeyValueStore、ObjectStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
编排器、限流器和摄取器只依赖这些接口。
"""

from typing import Protocol

from ..models.enums import TaskStatus
from ..models.event import TaskEvent
from ..models.task import MediaItem, ReferencedContent, Task, UserInfo


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(
        self,
        source_content_id: str,
        mention_id: str,
        mention_url: str | None = None,
    ) -> tuple[Task, bool]:
        """按 mention_id 幂等创建任务，返回 (task, created)"""
        ...

    async def get_task(self, task_id: str) -> Task | None: ...

    async def get_task_by_mention_id(self, mention_id: str) -> Task | None: ...

    async def list_tasks_by_source_content(self, source_content_id: str) -> list[Task]: ...

    async def list_tasks(self, status: str | None = None) -> list[Task]: ...

    async def list_pending(self, limit: int = 10) -> list[Task]: ...

    async def list_recent(self, limit: int = 10) -> list[Task]: ...

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: str | None = None,
        expected_status: TaskStatus | None = None,
        reason: str = "",
    ) -> Task | None:
        """更新状态；进入 FAILED 时 attempts + 1"""
        ...

    async def update_source_content(
        self,
        task_id: str,
        text: str | None,
        media: list[MediaItem],
        user: UserInfo | None,
        references: list[ReferencedContent] | None = None,
    ) -> Task | None: ...

    async def update_result(
        self,
        task_id: str,
        reply_text: str | None,
        media_urls: list[str],
        response_id: str | None,
    ) -> Task | None:
        """记录结果并置为 COMPLETED"""
        ...

    async def get_events(self, task_id: str) -> list[TaskEvent]: ...


class KeyValueStore(Protocol):
    """带 TTL 的键值缓存接口"""

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, ttl_s: float | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class ObjectStore(Protocol):
    """媒体对象存储接口"""

    async def upload(self, data: bytes, mime_type: str) -> str:
        """上传并返回公开 URL"""
        ...
