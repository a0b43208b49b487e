"""协作方数据契约 -- 提及流、内容抓取、生成服务、发布、凭证

外部客户端统一返回这些模型，编排器只依赖此处定义的形状。
"""

from typing import Literal

from pydantic import BaseModel, Field

from .task import MediaItem, ReferencedContent, UserInfo


class Mention(BaseModel):
    """一条提及事件"""

    id: str
    text: str = ""


class MentionPage(BaseModel):
    """提及查询结果"""

    items: list[Mention] = Field(default_factory=list)
    cursor: str | None = Field(default=None, description="本批最新的提及 ID")


class SourceContent(BaseModel):
    """内容抓取结果（文本已归一化）"""

    text: str = ""
    media: list[MediaItem] = Field(default_factory=list)
    author: UserInfo | None = None
    references: list[ReferencedContent] = Field(default_factory=list)


class PromptPart(BaseModel):
    """生成请求的一个片段：文本或图片"""

    kind: Literal["text", "image"] = "text"
    text: str | None = None
    url: str | None = None
    data: bytes | None = None
    mime_type: str | None = None

    @classmethod
    def of_text(cls, text: str) -> "PromptPart":
        return cls(kind="text", text=text)

    @classmethod
    def of_image_url(cls, url: str, mime_type: str | None = None) -> "PromptPart":
        return cls(kind="image", url=url, mime_type=mime_type)


class GeneratedMedia(BaseModel):
    """生成服务返回的媒体（原始字节）"""

    data: bytes
    mime_type: str = "image/png"


class PublishResult(BaseModel):
    """发布回复的结果"""

    response_id: str | None = None


class Credentials(BaseModel):
    """社交平台访问凭证"""

    access_token: str
    user_id: str


class TokenGrant(BaseModel):
    """OAuth2 刷新结果"""

    access_token: str
    expires_in: int = 7200
    refresh_token: str | None = None
