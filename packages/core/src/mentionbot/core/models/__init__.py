"""mentionbot Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .content import (
    Credentials,
    GeneratedMedia,
    Mention,
    MentionPage,
    PromptPart,
    PublishResult,
    SourceContent,
    TokenGrant,
)
from .enums import (
    ORCHESTRATION_ENTRY_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ErrorKind,
    MediaType,
    StageName,
    TaskEventType,
    TaskStatus,
    validate_status_write,
    validate_transition,
)
from .event import StateTransitionPayload, TaskEvent
from .task import MediaItem, ReferencedContent, Task, UserInfo

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskEventType",
    "ErrorKind",
    "StageName",
    "MediaType",
    # 状态机
    "VALID_TRANSITIONS",
    "ORCHESTRATION_ENTRY_STATES",
    "TERMINAL_STATES",
    "validate_transition",
    "validate_status_write",
    # Task
    "Task",
    "MediaItem",
    "UserInfo",
    "ReferencedContent",
    # Event
    "TaskEvent",
    "StateTransitionPayload",
    # 协作方契约
    "Mention",
    "MentionPage",
    "SourceContent",
    "PromptPart",
    "GeneratedMedia",
    "PublishResult",
    "Credentials",
    "TokenGrant",
]
