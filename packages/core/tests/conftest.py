"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from mentionbot.core.store import StoreGroup, create_store_group


class FakeClock:
    """可手动推进的时钟，用于 KV TTL 测试"""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def core_store_group(tmp_path: Path, clock: FakeClock) -> AsyncGenerator[StoreGroup, None]:
    """核心层已初始化的 StoreGroup（注入 FakeClock）"""
    group = await create_store_group(
        str(tmp_path / "core_test.db"),
        tmp_path / "media",
        "http://media.test/media",
        clock=clock,
    )
    yield group
    await group.close()
