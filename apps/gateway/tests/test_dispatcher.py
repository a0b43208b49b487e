"""TaskDispatcher 与 PeriodicJob 单元测试"""

import asyncio

from mentionbot.core.models import TaskStatus
from mentionbot.gateway.services.dispatcher import TaskDispatcher
from mentionbot.gateway.services.scheduler import PeriodicJob


class _CrashingOrchestrator:
    async def run(self, task_id):
        raise RuntimeError("bug")


class TestTaskDispatcher:
    async def test_dispatch_runs_concurrently(self, services, store_group, social, source_factory):
        task_ids = []
        for i in range(3):
            task, _ = await store_group.task_store.create_task(f"c-{i}", f"m-{i}")
            social.contents[f"c-{i}"] = source_factory()
            task_ids.append(task.task_id)

        for task_id in task_ids:
            services.dispatcher.dispatch(task_id)
        assert services.dispatcher.pending_count == 3

        await services.dispatcher.drain()

        assert services.dispatcher.pending_count == 0
        for task_id in task_ids:
            task = await store_group.task_store.get_task(task_id)
            assert task.status == TaskStatus.COMPLETED

    async def test_missing_task_is_logged_not_raised(self, services):
        bg = services.dispatcher.dispatch("01JNOTEXIST000000000000000")
        await services.dispatcher.drain()
        assert bg.result() is None

    async def test_crash_is_contained(self):
        dispatcher = TaskDispatcher(_CrashingOrchestrator())
        bg = dispatcher.dispatch("t-1")
        await dispatcher.drain()
        assert bg.result() is None


class TestPeriodicJob:
    async def test_runs_repeatedly_and_survives_failures(self):
        calls = []

        async def flaky():
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("first run fails")

        job = PeriodicJob("flaky", flaky, interval_s=0.01)
        job.start()
        assert job.running is True
        for _ in range(100):
            if job.runs >= 3:
                break
            await asyncio.sleep(0.01)
        await job.stop()

        assert job.running is False
        assert job.runs >= 3
        assert job.failures == 1

    async def test_run_once(self):
        calls = []

        async def fn():
            calls.append(1)

        job = PeriodicJob("once", fn, interval_s=60, run_immediately=False)
        await job.run_once()
        assert calls == [1]
        assert job.runs == 1
        await job.stop()

    async def test_start_is_idempotent(self):
        async def fn():
            return None

        job = PeriodicJob("idem", fn, interval_s=60, run_immediately=False)
        job.start()
        first = job._task
        job.start()
        assert job._task is first
        await job.stop()
