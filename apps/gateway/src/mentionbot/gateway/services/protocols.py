"""流水线协作方接口

编排器和摄取器只依赖这些结构化接口；生产实现分别是
SocialClient（mentionbot.social）和 LiteLLMClient / FallbackManager（mentionbot.provider）。
access token 按调用传入。
"""

from typing import Protocol

from mentionbot.core.models import (
    Credentials,
    MentionPage,
    PromptPart,
    PublishResult,
    SourceContent,
)
from mentionbot.provider import GenerationResult


class ContentClient(Protocol):
    async def get_content(self, content_id: str, access_token: str) -> SourceContent: ...


class Publisher(Protocol):
    async def reply(
        self,
        content_id: str,
        text: str,
        media_ids: list[str],
        access_token: str,
    ) -> PublishResult: ...

    async def upload_media(self, data: bytes, mime_type: str, access_token: str) -> str:
        """上传媒体并返回平台 media id"""
        ...


class MentionFeed(Protocol):
    async def list_mentions_since(
        self,
        user_id: str,
        cursor: str | None,
        access_token: str,
    ) -> MentionPage: ...


class Generator(Protocol):
    async def generate(
        self,
        parts: list[PromptPart],
        system_instruction: str | None = None,
    ) -> GenerationResult: ...


class CredentialSource(Protocol):
    async def get_credentials(self) -> Credentials | None: ...


class Dispatcher(Protocol):
    def dispatch(self, task_id: str) -> None: ...
