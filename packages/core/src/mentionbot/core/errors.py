"""流水线错误体系

错误携带显式的 ErrorKind，调用方根据数据分支（retryable），
而不是根据构造它的工厂函数分支。
"""

import aiosqlite

from .models.enums import ErrorKind, StageName

_RETRYABLE_KINDS = {ErrorKind.TRANSIENT}


class PipelineError(Exception):
    """流水线基础异常"""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        stage: StageName | None = None,
        formatted: bool = False,
    ) -> None:
        """
        Args:
            message: 错误描述
            kind: 错误分类，None 时使用类默认值
            stage: 出错的流水线阶段
            formatted: message 已是写入 Task.error_message 的最终文本，
                编排器不再套用阶段前缀
        """
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.stage = stage
        self.formatted = formatted

    @property
    def retryable(self) -> bool:
        """仅瞬时错误允许在同一次执行内重试"""
        return self.kind in _RETRYABLE_KINDS


class TaskNotFoundError(PipelineError):
    """任务不存在（不可重试，直接暴露给调用方）"""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}", stage=StageName.LOAD)
        self.task_id = task_id


class InvalidInputError(PipelineError):
    """缺少必要输入（如请求者身份），不可重试"""

    kind = ErrorKind.VALIDATION


class RateLimitExceededError(PipelineError):
    """用户超出配额；本次执行不重试，窗口过期后可由外部重新触发"""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, user_id: str = "", remaining: int = 0) -> None:
        super().__init__(message, stage=StageName.RATE_LIMIT, formatted=True)
        self.user_id = user_id
        self.remaining = remaining


class TransientError(PipelineError):
    """外部瞬时失败（网络/服务错误），可退避重试"""

    kind = ErrorKind.TRANSIENT


class TerminalError(PipelineError):
    """外部不可恢复失败（如凭证非法），不可重试"""

    kind = ErrorKind.TERMINAL


class TaskStatusConflictError(PipelineError):
    """条件写失败：存储中的状态与期望状态不一致"""

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        task_id: str,
        expected: str | None,
        actual: str | None,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"task {task_id} status conflict: expected {expected}, actual {actual}"
        )
        self.task_id = task_id
        self.expected = expected
        self.actual = actual


class InvalidTransitionError(TaskStatusConflictError):
    """目标状态不是当前状态的合法后继，写入被拒绝"""

    def __init__(self, task_id: str, actual: str, target: str) -> None:
        super().__init__(
            task_id,
            expected=None,
            actual=actual,
            message=f"task {task_id} invalid transition: {actual} -> {target}",
        )
        self.target = target


# 连接类/超时类异常统一视为瞬时错误
_TRANSIENT_ERROR_TYPES = (
    TimeoutError,
    ConnectionError,
    OSError,
    aiosqlite.OperationalError,
)


def classify_error(error: Exception, stage: StageName | None = None) -> PipelineError:
    """将任意异常归类为 PipelineError

    规则：
    1. PipelineError 原样返回（补充 stage）
    2. 带 recoverable 属性的协作方异常（ProviderError / SocialAPIError）：
       recoverable=True -> TRANSIENT，False -> TERMINAL
    3. 超时/连接/数据库忙 -> TRANSIENT
    4. 其他未知异常 -> TRANSIENT（除非显式标记为不可重试，否则允许重试）
    """
    if isinstance(error, PipelineError):
        if error.stage is None:
            error.stage = stage
        return error

    message = str(error) or type(error).__name__

    classified: PipelineError
    if isinstance(error, _TRANSIENT_ERROR_TYPES):
        classified = TransientError(message, stage=stage)
    elif getattr(error, "recoverable", True) is False:
        classified = TerminalError(message, stage=stage)
    else:
        classified = TransientError(message, stage=stage)

    classified.__cause__ = error
    return classified
