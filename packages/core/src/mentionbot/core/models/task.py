"""Task Domain Model

tasks 表中的一行对应一个 Task；嵌套子对象（媒体列表、用户信息、引用内容）
在内存中是强类型模型，仅在存储边界序列化为 JSON 文本。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import MediaType, TaskStatus


class MediaItem(BaseModel):
    """原始内容中的媒体引用"""

    media_key: str = Field(default="", description="媒体 key")
    type: MediaType | str = Field(default=MediaType.PHOTO, description="媒体类型")
    url: str | None = Field(default=None, description="媒体 URL")


class UserInfo(BaseModel):
    """请求者身份快照，id 作为限流 key"""

    id: str = Field(description="用户 ID")
    username: str = Field(default="", description="用户名")
    name: str = Field(default="", description="显示名称")


class ReferencedContent(BaseModel):
    """被引用/被回复的内容"""

    text: str = Field(default="", description="已归一化的文本")
    media: list[MediaItem] = Field(default_factory=list, description="媒体列表")


class Task(BaseModel):
    """Task 数据模型 -- 一次 提及 -> 回复 流水线执行的持久化单元"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    source_content_id: str = Field(description="被回复的原始内容 ID")
    mention_id: str = Field(description="提及事件 ID，全局唯一")
    mention_url: str | None = Field(default=None, description="提及链接")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    attempts: int = Field(default=0, ge=0, description="进入 FAILED 的次数")
    error_message: str | None = Field(default=None, description="最近一次失败原因")

    # fetch 阶段写入
    source_text: str | None = Field(default=None, description="归一化后的原文")
    source_media: list[MediaItem] = Field(default_factory=list, description="原文媒体")
    source_references: list[ReferencedContent] = Field(
        default_factory=list,
        description="引用内容",
    )
    source_user: UserInfo | None = Field(default=None, description="请求者信息")

    # generate / publish 阶段写入
    result_media: list[str] = Field(default_factory=list, description="生成媒体的公开 URL")
    reply_text: str | None = Field(default=None, description="回复文本")
    response_id: str | None = Field(default=None, description="已发布回复的 ID")
