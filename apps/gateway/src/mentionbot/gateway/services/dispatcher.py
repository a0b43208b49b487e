"""TaskDispatcher -- 以 asyncio task 并发执行编排

持有后台 task 的强引用直到完成，drain() 等待全部结束（关闭和测试时使用）。
"""

import asyncio

import structlog
from mentionbot.core.errors import TaskNotFoundError

from .orchestrator import RunOutcome, TaskOrchestrator

log = structlog.get_logger()


class TaskDispatcher:
    """编排派发器"""

    def __init__(self, orchestrator: TaskOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._running: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._running)

    def dispatch(self, task_id: str) -> asyncio.Task:
        """后台启动一次编排，立即返回"""
        bg = asyncio.create_task(self._run(task_id), name=f"orchestrate-{task_id}")
        self._running.add(bg)
        bg.add_done_callback(self._running.discard)
        return bg

    async def drain(self) -> None:
        """等待所有已派发的编排结束"""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def _run(self, task_id: str) -> RunOutcome | None:
        try:
            return await self._orchestrator.run(task_id)
        except TaskNotFoundError:
            log.warning("dispatched_task_not_found", task_id=task_id)
            return None
        except Exception:
            # 后台 task 没有调用方接收异常，记录后结束
            log.exception("task_orchestration_crashed", task_id=task_id)
            return None
