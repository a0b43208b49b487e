"""TaskOrchestrator -- 单个任务的 提及 -> 回复 流水线编排

执行顺序：
1. 加载任务（不存在抛出 TaskNotFoundError）
2. 入口守卫：仅 PENDING / FAILED 可进入，其余状态直接跳过，无任何写入和外部调用
3. 写入 PROCESSING（默认先读后写；claim_with_cas 时为条件写）
4. 获取凭证
5. fetch：抓取原文并持久化
6. rate-limit：按请求者消耗配额
7. 写入 GENERATING
8. generate：生成回复文本与媒体
9. publish：发布回复
10. update_result -> COMPLETED

任一阶段最终失败：写入 FAILED（attempts + 1）并结束本次执行。
重新触发 FAILED 任务时从 fetch 阶段重新开始。
存储拒绝状态写入时（并发执行已先完成任务）本次执行以 superseded 结束，不覆盖已有结果。
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from mentionbot.core.errors import (
    PipelineError,
    TaskNotFoundError,
    TaskStatusConflictError,
    TerminalError,
    classify_error,
)
from mentionbot.core.models import (
    ORCHESTRATION_ENTRY_STATES,
    StageName,
    Task,
    TaskStatus,
)
from mentionbot.core.store import TaskStore
from pydantic import BaseModel, Field

from .protocols import CredentialSource
from .stages import PipelineStages

log = structlog.get_logger()

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]

# 阶段失败时写入 error_message 的模板
_FAILURE_TEMPLATES: dict[StageName, str] = {
    StageName.FETCH: "Failed to get post details, error: {reason}",
    StageName.GENERATE: "Failed to generate content, error: {reason}",
    StageName.PUBLISH: "Failed to publish reply, error: {reason}",
    StageName.PERSIST: "Failed to persist task state, error: {reason}",
}

CREDENTIALS_FAILURE_MESSAGE = "Failed to get credentials"


class StagePolicy(BaseModel):
    """单个阶段的重试与超时策略"""

    max_retries: int = Field(default=2, ge=0, description="首轮之外的最大重试次数")
    base_delay_s: float = Field(default=5.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    timeout_s: float = Field(default=60.0, gt=0, description="单次尝试超时")

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次失败后的等待时间（attempt 从 1 开始）"""
        return self.base_delay_s * self.backoff_factor ** (attempt - 1)


def default_stage_policies() -> dict[StageName, StagePolicy]:
    """各阶段默认策略：重试 2 次，指数退避；生成阶段超时 10 分钟"""
    return {
        StageName.LOAD: StagePolicy(base_delay_s=5),
        StageName.CREDENTIALS: StagePolicy(base_delay_s=5),
        StageName.FETCH: StagePolicy(base_delay_s=10),
        StageName.RATE_LIMIT: StagePolicy(base_delay_s=10),
        StageName.GENERATE: StagePolicy(base_delay_s=10, timeout_s=600),
        StageName.PUBLISH: StagePolicy(base_delay_s=20),
        StageName.PERSIST: StagePolicy(base_delay_s=5),
    }


class OrchestratorConfig(BaseModel):
    """编排器配置"""

    policies: dict[StageName, StagePolicy] = Field(default_factory=default_stage_policies)
    claim_with_cas: bool = Field(
        default=False,
        description="进入 PROCESSING 时按读到的状态做条件写，输掉竞争的执行直接跳过",
    )

    def policy_for(self, stage: StageName) -> StagePolicy:
        return self.policies.get(stage) or StagePolicy()


class RunOutcome(BaseModel):
    """一次编排执行的结果"""

    task_id: str
    status: TaskStatus | None = None
    skipped: bool = False
    error_message: str | None = None
    failed_stage: StageName | None = None
    response_id: str | None = None
    superseded: bool = Field(
        default=False,
        description="状态写入被拒绝：并发执行已先行改变任务状态",
    )


class TaskOrchestrator:
    """单任务流水线编排器"""

    def __init__(
        self,
        store: TaskStore,
        credentials: CredentialSource,
        stages: PipelineStages,
        config: OrchestratorConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """
        Args:
            store: 任务存储
            credentials: 凭证来源
            stages: 流水线阶段实现
            config: 重试策略与单飞模式
            sleep: 退避等待函数，测试中注入以跳过真实等待
        """
        self._store = store
        self._credentials = credentials
        self._stages = stages
        self._config = config or OrchestratorConfig()
        self._sleep = sleep

    async def run(self, task_id: str) -> RunOutcome:
        """执行一次编排

        Raises:
            TaskNotFoundError: 任务不存在
        """
        bound_log = log.bind(task_id=task_id)

        task = await self._run_stage(StageName.LOAD, task_id, lambda: self._store.get_task(task_id))
        if task is None:
            raise TaskNotFoundError(task_id)

        if task.status not in ORCHESTRATION_ENTRY_STATES:
            bound_log.info("task_skipped", status=task.status.value)
            return RunOutcome(task_id=task_id, status=task.status, skipped=True)

        try:
            await self._run_stage(
                StageName.PERSIST,
                task_id,
                lambda: self._store.update_status(
                    task_id,
                    TaskStatus.PROCESSING,
                    expected_status=task.status if self._config.claim_with_cas else None,
                    reason="orchestration started",
                ),
            )
        except TaskStatusConflictError as e:
            bound_log.info("task_claim_lost", expected=e.expected, actual=e.actual)
            actual = TaskStatus(e.actual) if e.actual else None
            return RunOutcome(task_id=task_id, status=actual, skipped=True)

        bound_log.info("task_processing_started", previous_status=task.status.value)
        try:
            return await self._run_pipeline(task)
        except TaskStatusConflictError as e:
            return self._superseded(task_id, e)
        except PipelineError as e:
            return await self._fail(task_id, e)

    async def _run_pipeline(self, task: Task) -> RunOutcome:
        task_id = task.task_id

        credentials = await self._run_stage(
            StageName.CREDENTIALS, task_id, self._credentials.get_credentials
        )
        if credentials is None:
            raise TerminalError(
                CREDENTIALS_FAILURE_MESSAGE,
                stage=StageName.CREDENTIALS,
                formatted=True,
            )

        task = await self._run_stage(
            StageName.FETCH,
            task_id,
            lambda: self._stages.fetch(task, credentials),
        )
        await self._run_stage(
            StageName.RATE_LIMIT,
            task_id,
            lambda: self._stages.check_rate_limit(task),
        )

        await self._run_stage(
            StageName.PERSIST,
            task_id,
            lambda: self._store.update_status(
                task_id, TaskStatus.GENERATING, reason="rate limit passed"
            ),
        )

        reply = await self._run_stage(
            StageName.GENERATE,
            task_id,
            lambda: self._stages.generate(task, credentials),
        )
        response_id = await self._run_stage(
            StageName.PUBLISH,
            task_id,
            lambda: self._stages.publish(task, reply, credentials),
        )

        await self._run_stage(
            StageName.PERSIST,
            task_id,
            lambda: self._store.update_result(
                task_id,
                reply_text=reply.text,
                media_urls=reply.media_urls,
                response_id=response_id,
            ),
        )
        log.info("task_completed", task_id=task_id, response_id=response_id)
        return RunOutcome(
            task_id=task_id,
            status=TaskStatus.COMPLETED,
            response_id=response_id,
        )

    async def _run_stage(
        self,
        stage: StageName,
        task_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """按阶段策略执行：单次尝试超时，瞬时错误指数退避重试

        不可重试的错误立即抛出，不消耗重试次数。
        """
        policy = self._config.policy_for(stage)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(fn(), timeout=policy.timeout_s)
            except TimeoutError as e:
                error: PipelineError = classify_error(
                    TimeoutError(f"{stage.value} timed out after {policy.timeout_s}s"),
                    stage,
                )
                error.__cause__ = e
            except Exception as e:
                error = classify_error(e, stage)

            if not error.retryable or attempt > policy.max_retries:
                raise error

            delay = policy.delay_for(attempt)
            log.warning(
                "stage_retry",
                task_id=task_id,
                stage=stage.value,
                attempt=attempt,
                delay_s=delay,
                error=error.message,
                error_type=type(error.__cause__ or error).__name__,
            )
            await self._sleep(delay)

    async def _fail(self, task_id: str, error: PipelineError) -> RunOutcome:
        """写入 FAILED 并返回失败结果；写入本身失败时异常向上抛出"""
        if isinstance(error, TaskNotFoundError):
            raise error

        stage = error.stage
        message = error.message
        if not error.formatted and stage in _FAILURE_TEMPLATES:
            message = _FAILURE_TEMPLATES[stage].format(reason=error.message)

        log.warning(
            "task_failed",
            task_id=task_id,
            stage=stage.value if stage else None,
            error_kind=error.kind.value,
            error=message,
        )
        try:
            updated = await self._run_stage(
                StageName.PERSIST,
                task_id,
                lambda: self._store.update_status(
                    task_id,
                    TaskStatus.FAILED,
                    error_message=message,
                    reason=f"{stage.value if stage else 'unknown'} failed",
                ),
            )
        except TaskStatusConflictError as e:
            return self._superseded(task_id, e)
        return RunOutcome(
            task_id=task_id,
            status=TaskStatus.FAILED if updated is None else updated.status,
            error_message=message,
            failed_stage=stage,
        )

    @staticmethod
    def _superseded(task_id: str, error: TaskStatusConflictError) -> RunOutcome:
        """并发执行已把任务推进到不可覆盖的状态（通常是 COMPLETED），本次结果不落库"""
        log.warning(
            "task_superseded",
            task_id=task_id,
            actual_status=error.actual,
            error=error.message,
        )
        return RunOutcome(
            task_id=task_id,
            status=TaskStatus(error.actual) if error.actual else None,
            superseded=True,
        )
