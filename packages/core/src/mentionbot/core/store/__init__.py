"""mentionbot Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

import aiosqlite

from .event_store import SqliteTaskEventStore
from .kv_store import SqliteKeyValueStore
from .object_store import LocalObjectStore
from .protocols import KeyValueStore, ObjectStore, TaskStore
from .sqlite_init import init_db, verify_wal_mode
from .task_store import SqliteTaskStore
from .transaction import append_task_event, write_transaction


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接和同一把写锁"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        media_dir: Path,
        public_base_url: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.event_store = SqliteTaskEventStore(conn)
        self.task_store = SqliteTaskStore(conn, self.event_store, self.write_lock)
        self.kv_store = SqliteKeyValueStore(conn, self.write_lock, clock=clock)
        self.object_store = LocalObjectStore(media_dir, public_base_url)

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(
    db_path: str,
    media_dir: str | Path,
    public_base_url: str = "http://localhost:8000/media",
    clock: Callable[[], float] = time.time,
) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        media_dir: 生成媒体存储目录
        public_base_url: 媒体对外访问 URL 前缀
        clock: KV 缓存 TTL 使用的时钟

    Returns:
        StoreGroup 实例
    """
    media_path = Path(media_dir)
    media_path.mkdir(parents=True, exist_ok=True)

    # 确保数据库目录存在
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(
        conn=conn,
        media_dir=media_path,
        public_base_url=public_base_url,
        clock=clock,
    )


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteTaskEventStore",
    "SqliteKeyValueStore",
    "LocalObjectStore",
    "TaskStore",
    "KeyValueStore",
    "ObjectStore",
    "init_db",
    "verify_wal_mode",
    "append_task_event",
    "write_transaction",
]
