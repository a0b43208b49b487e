"""RateLimiter -- 按用户的固定窗口计数限流

计数保存在 KV 缓存 rate_limit:{user_id}，TTL 为窗口长度。
窗口边界处允许突发（最多 2 倍配额），这是固定窗口的已知代价。
同一用户的读-改-写在进程内串行，并发调用不会丢失计数。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from mentionbot.core.config import (
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_WINDOW_S,
    RATE_LIMIT_KEY_PREFIX,
)
from mentionbot.core.store import KeyValueStore
from pydantic import BaseModel, Field

log = structlog.get_logger()


class RateLimitConfig(BaseModel):
    """限流配置"""

    max_requests: int = Field(default=DEFAULT_RATE_LIMIT_MAX_REQUESTS, ge=1)
    window_s: int = Field(default=DEFAULT_RATE_LIMIT_WINDOW_S, ge=1)


class RateLimiter:
    """固定窗口限流器"""

    def __init__(self, kv_store: KeyValueStore, config: RateLimitConfig | None = None) -> None:
        self._kv = kv_store
        self._config = config or RateLimitConfig()
        self._locks: dict[str, asyncio.Lock] = {}
        # 持有或等待各用户锁的协程数，归零时删除该锁
        self._lock_users: dict[str, int] = {}

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    async def is_allowed(self, user_id: str) -> bool:
        """检查并消耗一次配额

        计数不存在时写入 1 并开启窗口；小于上限时加 1；达到上限时拒绝且不写入。
        """
        key = self._key(user_id)
        async with self._user_lock(user_id):
            current = await self._read_count(key)
            if current >= self._config.max_requests:
                log.info(
                    "rate_limit_denied",
                    user_id=user_id,
                    count=current,
                    max_requests=self._config.max_requests,
                )
                return False
            await self._kv.put(key, str(current + 1), ttl_s=self._config.window_s)
            return True

    async def current_count(self, user_id: str) -> int:
        return await self._read_count(self._key(user_id))

    async def remaining(self, user_id: str) -> int:
        """当前窗口剩余配额，不小于 0"""
        return max(0, self._config.max_requests - await self.current_count(user_id))

    async def reset(self, user_id: str) -> None:
        async with self._user_lock(user_id):
            await self._kv.delete(self._key(user_id))

    async def _read_count(self, key: str) -> int:
        raw = await self._kv.get(key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            # 计数被写坏时按窗口重新开始
            log.warning("rate_limit_counter_corrupted", key=key, value=raw)
            return 0

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        """按用户串行；最后一个使用者离开后释放锁对象，_locks 不随用户数增长"""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if self._lock_users[user_id] == 0:
                del self._lock_users[user_id]
                del self._locks[user_id]

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{RATE_LIMIT_KEY_PREFIX}{user_id}"
