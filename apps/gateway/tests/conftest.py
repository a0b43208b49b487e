"""apps/gateway 测试配置 -- 临时 StoreGroup + 协作方 Fake + 服务装配"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from mentionbot.core.models import (
    GeneratedMedia,
    MediaItem,
    MentionPage,
    PublishResult,
    SourceContent,
    TaskStatus,
    TokenGrant,
    UserInfo,
)
from mentionbot.core.store import StoreGroup, create_store_group
from mentionbot.gateway.services.container import GatewayServices
from mentionbot.gateway.services.rate_limiter import RateLimitConfig
from mentionbot.provider import GenerationResult
from mentionbot.social import SocialAPIError, SocialConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\ngenerated"


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSocialClient:
    """内容抓取 / 提及流 / 回复 / 媒体上传的内存实现

    *_errors 列表按调用顺序弹出并抛出，用于模拟瞬时或永久失败。
    """

    def __init__(self) -> None:
        self.contents: dict[str, SourceContent] = {}
        self.content_errors: list[Exception] = []
        self.mention_pages: list[MentionPage] = []
        self.mention_errors: list[Exception] = []
        self.reply_errors: list[Exception] = []
        self.upload_errors: list[Exception] = []
        self.reply_response_id: str | None = "reply-1"
        self.calls: list[tuple] = []

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def calls_of(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def get_content(self, content_id: str, access_token: str) -> SourceContent:
        self.calls.append(("get_content", content_id, access_token))
        if self.content_errors:
            raise self.content_errors.pop(0)
        if content_id not in self.contents:
            raise SocialAPIError("API request failed: 404 Not Found", status_code=404)
        return self.contents[content_id]

    async def list_mentions_since(
        self,
        user_id: str,
        cursor: str | None,
        access_token: str,
    ) -> MentionPage:
        self.calls.append(("list_mentions_since", user_id, cursor, access_token))
        if self.mention_errors:
            raise self.mention_errors.pop(0)
        if self.mention_pages:
            return self.mention_pages.pop(0)
        return MentionPage()

    async def reply(
        self,
        content_id: str,
        text: str,
        media_ids: list[str],
        access_token: str,
    ) -> PublishResult:
        self.calls.append(("reply", content_id, text, list(media_ids), access_token))
        if self.reply_errors:
            raise self.reply_errors.pop(0)
        return PublishResult(response_id=self.reply_response_id)

    async def upload_media(self, data: bytes, mime_type: str, access_token: str) -> str:
        self.calls.append(("upload_media", len(data), mime_type, access_token))
        if self.upload_errors:
            raise self.upload_errors.pop(0)
        return f"media-{self.count('upload_media')}"


class FakeGenerator:
    """生成客户端 Fake：返回预设结果，可按顺序抛出错误或延迟"""

    def __init__(self) -> None:
        self.result = GenerationResult(
            text="Here is your picture",
            media=[GeneratedMedia(data=PNG_BYTES, mime_type="image/png")],
            model_name="fake-image",
        )
        self.errors: list[Exception] = []
        self.delay_s: float = 0.0
        self.calls: list[tuple] = []
        self.healthy = True

    async def generate(self, parts, system_instruction=None, **kwargs) -> GenerationResult:
        self.calls.append((list(parts), system_instruction))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.errors:
            raise self.errors.pop(0)
        return self.result

    async def health_check(self) -> bool:
        return self.healthy


class FakeTokenClient:
    def __init__(self) -> None:
        self.grant = TokenGrant(access_token="fresh-access", expires_in=7200)
        self.error: Exception | None = None
        self.calls: list[tuple[str, str, str]] = []

    async def refresh_token(self, refresh_token: str, client_id: str, client_secret: str) -> TokenGrant:
        self.calls.append((refresh_token, client_id, client_secret))
        if self.error is not None:
            raise self.error
        return self.grant


class RecordingSleep:
    """记录退避等待时长，不真正等待"""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_source(
    text: str = "draw a cat",
    user: UserInfo | None = None,
    media_urls: tuple[str, ...] = ("https://img.test/cat.jpg",),
) -> SourceContent:
    return SourceContent(
        text=text,
        media=[MediaItem(media_key=f"k{i}", type="photo", url=url) for i, url in enumerate(media_urls)],
        author=user if user is not None else UserInfo(id="u-42", username="alice", name="Alice"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def social() -> FakeSocialClient:
    return FakeSocialClient()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def token_client() -> FakeTokenClient:
    return FakeTokenClient()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def social_config() -> SocialConfig:
    return SocialConfig(
        access_token="cfg-access",
        user_id="bot-1",
        refresh_token="cfg-refresh",
        client_id="client-id",
        client_secret="client-secret",
    )


@pytest.fixture
def source_factory():
    """构造 SourceContent 的工厂"""
    return make_source


@pytest_asyncio.fixture
async def store_group(tmp_path: Path, clock: FakeClock) -> AsyncGenerator[StoreGroup, None]:
    group = await create_store_group(
        str(tmp_path / "gateway_test.db"),
        tmp_path / "media",
        "http://media.test/media",
        clock=clock,
    )
    yield group
    await group.close()


# 按状态机合法路径把 PENDING 任务推进到目标状态
_STATUS_PATHS: dict[TaskStatus, tuple[TaskStatus, ...]] = {
    TaskStatus.PROCESSING: (TaskStatus.PROCESSING,),
    TaskStatus.GENERATING: (TaskStatus.PROCESSING, TaskStatus.GENERATING),
    TaskStatus.FAILED: (TaskStatus.PROCESSING, TaskStatus.FAILED),
    TaskStatus.COMPLETED: (TaskStatus.PROCESSING, TaskStatus.GENERATING),
}


@pytest.fixture
def move_task(store_group):
    async def _move(task_id: str, status: TaskStatus, error_message: str | None = None):
        for step in _STATUS_PATHS[status]:
            message = error_message if step == TaskStatus.FAILED else None
            await store_group.task_store.update_status(task_id, step, error_message=message)
        if status == TaskStatus.COMPLETED:
            await store_group.task_store.update_result(
                task_id, reply_text="done", media_urls=[], response_id="reply-0"
            )
        return await store_group.task_store.get_task(task_id)

    return _move


@pytest.fixture
def build_services(store_group, social, generator, token_client, social_config, sleep):
    """按需覆盖参数构建 GatewayServices"""

    def _build(**overrides) -> GatewayServices:
        kwargs = {
            "store_group": store_group,
            "social_client": social,
            "token_client": token_client,
            "generator": generator,
            "social_config": social_config,
            "rate_limit_config": RateLimitConfig(max_requests=3, window_s=60),
            "sleep": sleep,
        }
        kwargs.update(overrides)
        return GatewayServices(**kwargs)

    return _build


@pytest_asyncio.fixture
async def services(build_services) -> AsyncGenerator[GatewayServices, None]:
    svc = build_services()
    yield svc
    await svc.dispatcher.drain()
