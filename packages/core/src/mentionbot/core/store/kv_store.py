"""KeyValueStore SQLite 实现 -- 带 TTL 的键值缓存

用于限流计数、提及游标和 OAuth 凭证。过期判定在读取时进行，
过期行视为不存在，由 purge_expired() 统一清理。
"""

import asyncio
import time
from collections.abc import Callable

import aiosqlite

from .transaction import write_transaction


class SqliteKeyValueStore:
    """KeyValueStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        write_lock: asyncio.Lock,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            conn: 共享数据库连接
            write_lock: StoreGroup 级写锁
            clock: 返回 epoch 秒的时钟，测试中可注入以模拟 TTL 过期
        """
        self._conn = conn
        self._lock = write_lock
        self._clock = clock

    async def get(self, key: str) -> str | None:
        """读取未过期的值，不存在或已过期返回 None"""
        cursor = await self._conn.execute(
            "SELECT value, expires_at FROM kv_cache WHERE key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        value, expires_at = row[0], row[1]
        if expires_at is not None and expires_at <= self._clock():
            return None
        return value

    async def put(self, key: str, value: str, ttl_s: float | None = None) -> None:
        """写入值；ttl_s 为 None 表示永不过期"""
        expires_at = self._clock() + ttl_s if ttl_s is not None else None
        async with write_transaction(self._conn, self._lock):
            await self._conn.execute(
                """
                INSERT INTO kv_cache (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               expires_at = excluded.expires_at
                """,
                (key, value, expires_at),
            )

    async def delete(self, key: str) -> None:
        async with write_transaction(self._conn, self._lock):
            await self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))

    async def purge_expired(self) -> int:
        """删除所有已过期的键，返回删除数量"""
        async with write_transaction(self._conn, self._lock):
            cursor = await self._conn.execute(
                "DELETE FROM kv_cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            return cursor.rowcount
