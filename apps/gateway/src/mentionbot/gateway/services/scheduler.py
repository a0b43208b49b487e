"""PeriodicJob -- 进程内周期任务（提及轮询、凭证刷新）"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()


class PeriodicJob:
    """每隔 interval_s 秒执行一次异步函数；单次失败记录日志后继续"""

    def __init__(
        self,
        name: str,
        fn: Callable[[], Awaitable[object]],
        interval_s: float,
        run_immediately: bool = True,
    ) -> None:
        self.name = name
        self._fn = fn
        self._interval_s = interval_s
        self._run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic-{self.name}")
        log.info("periodic_job_started", job=self.name, interval_s=self._interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("periodic_job_stopped", job=self.name)

    async def run_once(self) -> None:
        self.runs += 1
        try:
            await self._fn()
        except Exception:
            self.failures += 1
            log.exception("periodic_job_failed", job=self.name)

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self._interval_s)
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval_s)
