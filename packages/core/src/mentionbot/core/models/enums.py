"""枚举定义

包含 TaskStatus 状态机、TaskEventType、ErrorKind、StageName 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 ORCHESTRATION_ENTRY_STATES 入口状态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    GENERATING = "GENERATING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING},
    TaskStatus.PROCESSING: {TaskStatus.GENERATING, TaskStatus.FAILED},
    TaskStatus.GENERATING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    # FAILED 是单次执行的终点，可被重新触发
    TaskStatus.FAILED: {TaskStatus.PROCESSING},
    TaskStatus.COMPLETED: set(),
}

# 允许进入编排的状态；其余状态（执行中/已完成）直接跳过
ORCHESTRATION_ENTRY_STATES: set[TaskStatus] = {
    TaskStatus.PENDING,
    TaskStatus.FAILED,
}

TERMINAL_STATES: set[TaskStatus] = {TaskStatus.COMPLETED}


class TaskEventType(StrEnum):
    """任务事件类型"""

    TASK_CREATED = "TASK_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    SOURCE_FETCHED = "SOURCE_FETCHED"
    RESULT_RECORDED = "RESULT_RECORDED"


class ErrorKind(StrEnum):
    """流水线错误分类"""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    TERMINAL = "terminal"
    CONFLICT = "conflict"


class StageName(StrEnum):
    """流水线阶段"""

    LOAD = "load"
    CREDENTIALS = "credentials"
    FETCH = "fetch"
    RATE_LIMIT = "rate_limit"
    GENERATE = "generate"
    PUBLISH = "publish"
    PERSIST = "persist"


class MediaType(StrEnum):
    """媒体类型"""

    PHOTO = "photo"
    VIDEO = "video"
    ANIMATED_GIF = "animated_gif"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def validate_status_write(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """存储层的写入校验：合法流转，或对非终态的同状态重复写入

    同状态写入来自检查后执行竞争中后到的一次执行，状态本身不变。
    COMPLETED 之后任何写入都被拒绝。
    """
    if from_status == to_status:
        return from_status not in TERMINAL_STATES
    return validate_transition(from_status, to_status)
