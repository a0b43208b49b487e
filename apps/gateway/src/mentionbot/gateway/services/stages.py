"""流水线阶段 -- fetch / rate-limit / generate / publish

每个阶段是一次可独立重试的工作单元，只通过 TaskStore 持久化中间结果。
阶段内部主动判定的失败（缺少用户信息、超出配额、没有回复 ID）
使用 formatted=True 的错误，编排器原样写入 Task.error_message。
"""

import structlog
from mentionbot.core.errors import (
    InvalidInputError,
    RateLimitExceededError,
    TaskNotFoundError,
    TerminalError,
)
from mentionbot.core.models import (
    Credentials,
    MediaItem,
    MediaType,
    PromptPart,
    StageName,
    Task,
)
from mentionbot.core.store import ObjectStore, TaskStore
from mentionbot.social import SocialAPIError
from pydantic import BaseModel, Field

from .protocols import ContentClient, Generator, Publisher
from .rate_limiter import RateLimiter

log = structlog.get_logger()

# 单条回复可附带的媒体数量上限
MAX_REPLY_MEDIA = 4

SYSTEM_INSTRUCTION = """\
You reply to a social media post in which a user asked for an image.

Main content:
- Read the text for subjects, actions, scenes, style hints (e.g. "pixel art")
  and edit instructions (e.g. "brighten the background").
- Decide between generating a new image (draw / generate / create / make)
  and editing the attached images (modify / adjust / replace / add).

Referenced content:
- Use it for theme and style when the main content is ambiguous.
- Do not copy specific elements from it.

Generation: make abstract descriptions concrete and blend the shared features
of multiple attached images. On conflicts, explicit text instructions win over
features implied by images, which win over referenced content.

Editing: locate the target area, the kind of change and its intensity; keep
the original composition unless a rebuild is requested.

Keep lighting, perspective and proportions consistent. Reply with a short text
and the resulting image.
"""


class GeneratedReply(BaseModel):
    """generate 阶段的产出，publish 阶段的输入"""

    text: str = ""
    media_urls: list[str] = Field(default_factory=list, description="对象存储中的公开 URL")
    media_ids: list[str] = Field(default_factory=list, description="社交平台 media id")


def _image_parts(media: list[MediaItem]) -> list[PromptPart]:
    """只取带 URL 的图片"""
    return [
        PromptPart.of_image_url(m.url)
        for m in media
        if m.type == MediaType.PHOTO and m.url
    ]


def build_prompt_parts(task: Task) -> list[PromptPart]:
    """由已抓取的原文构建生成请求

    结构：<reference-content> 引用内容 </reference-content>（可选），
    然后 <content> 原文图片 + 原文文本 </content>。
    """
    parts: list[PromptPart] = []

    if task.source_references:
        parts.append(PromptPart.of_text("<reference-content>"))
        for ref in task.source_references:
            parts.extend(_image_parts(ref.media))
            if ref.text:
                parts.append(PromptPart.of_text(ref.text))
        parts.append(PromptPart.of_text("</reference-content>"))

    parts.append(PromptPart.of_text("<content>"))
    parts.extend(_image_parts(task.source_media))
    if task.source_text:
        parts.append(PromptPart.of_text(task.source_text))
    parts.append(PromptPart.of_text("</content>"))
    return parts


class PipelineStages:
    """流水线各阶段的实现"""

    def __init__(
        self,
        store: TaskStore,
        content_client: ContentClient,
        publisher: Publisher,
        rate_limiter: RateLimiter,
        generator: Generator,
        object_store: ObjectStore,
    ) -> None:
        self._store = store
        self._content = content_client
        self._publisher = publisher
        self._rate_limiter = rate_limiter
        self._generator = generator
        self._object_store = object_store

    async def fetch(self, task: Task, credentials: Credentials) -> Task:
        """抓取原文并持久化文本、媒体、请求者和引用内容"""
        content = await self._content.get_content(
            task.source_content_id,
            credentials.access_token,
        )
        updated = await self._store.update_source_content(
            task.task_id,
            text=content.text,
            media=content.media,
            user=content.author,
            references=content.references,
        )
        if updated is None:
            raise TaskNotFoundError(task.task_id)
        return updated

    async def check_rate_limit(self, task: Task) -> None:
        """按请求者 ID 消耗一次配额"""
        user = task.source_user
        if user is None:
            raise InvalidInputError(
                "can not get user info",
                stage=StageName.RATE_LIMIT,
                formatted=True,
            )

        if not await self._rate_limiter.is_allowed(user.id):
            remaining = await self._rate_limiter.remaining(user.id)
            raise RateLimitExceededError(
                f"user {user.username} : {user.id} rate limit exceeded, "
                f"remaining {remaining} requests",
                user_id=user.id,
                remaining=remaining,
            )

    async def generate(self, task: Task, credentials: Credentials) -> GeneratedReply:
        """调用生成服务，并把生成的媒体写入对象存储和社交平台

        媒体上传失败只记日志，回复仍然发送（不带该媒体）。
        """
        result = await self._generator.generate(build_prompt_parts(task), SYSTEM_INSTRUCTION)
        if result.is_empty:
            raise TerminalError(
                "response did not contain usable text or image data",
                stage=StageName.GENERATE,
            )

        reply = GeneratedReply(text=result.text.strip())
        for media in result.media[:MAX_REPLY_MEDIA]:
            try:
                reply.media_urls.append(await self._object_store.upload(media.data, media.mime_type))
            except OSError as e:
                log.warning("media_store_failed", task_id=task.task_id, error=str(e))

            try:
                media_id = await self._publisher.upload_media(
                    media.data,
                    media.mime_type,
                    credentials.access_token,
                )
            except SocialAPIError as e:
                log.warning(
                    "media_upload_failed",
                    task_id=task.task_id,
                    error=str(e),
                    status_code=e.status_code,
                )
                continue
            reply.media_ids.append(media_id)

        log.info(
            "content_generated",
            task_id=task.task_id,
            model_name=result.model_name,
            is_fallback=result.is_fallback,
            media_count=len(result.media),
            uploaded_media_count=len(reply.media_ids),
        )
        return reply

    async def publish(self, task: Task, reply: GeneratedReply, credentials: Credentials) -> str:
        """发布回复，返回回复 ID"""
        result = await self._publisher.reply(
            task.source_content_id,
            reply.text,
            reply.media_ids,
            credentials.access_token,
        )
        if not result.response_id:
            raise TerminalError(
                "Reply failed, unable to obtain response id",
                stage=StageName.PUBLISH,
                formatted=True,
            )
        return result.response_id
