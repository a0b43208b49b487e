"""集成测试共享 fixture -- 真实 Store + 真实 SocialClient（MockTransport 模拟平台）"""

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mentionbot.core.store import create_store_group
from mentionbot.gateway.services.container import GatewayServices
from mentionbot.gateway.services.rate_limiter import RateLimitConfig
from mentionbot.provider import EchoGenerationAdapter
from mentionbot.social import SocialClient, SocialConfig, TokenClient


class FakePlatform:
    """内存版社交平台：提及流、内容详情、回复、分段媒体上传、OAuth2 token"""

    def __init__(self) -> None:
        self.mentions: list[dict] = []
        self.posts: dict[str, dict] = {}
        self.replies: list[dict] = []
        self.upload_commands: list[str] = []
        self.token_requests: list[str] = []

    def add_mention(
        self,
        mention_id: str,
        text: str,
        author_id: str = "42",
        username: str = "alice",
        media_urls: tuple[str, ...] = (),
    ) -> None:
        self.mentions.append({"id": mention_id, "text": text})
        media = [
            {"media_key": f"{mention_id}_{i}", "type": "photo", "url": url}
            for i, url in enumerate(media_urls)
        ]
        self.posts[mention_id] = {
            "data": {
                "id": mention_id,
                "text": text,
                "author_id": author_id,
                "attachments": {"media_keys": [m["media_key"] for m in media]},
            },
            "includes": {
                "users": [{"id": author_id, "username": username, "name": username.title()}],
                "media": media,
            },
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if request.method == "GET" and path.endswith("/mentions"):
            since = request.url.params.get("since_id")
            items = [m for m in self.mentions if since is None or int(m["id"]) > int(since)]
            meta: dict = {"result_count": len(items)}
            if not items:
                return httpx.Response(200, json={"meta": meta})
            meta["newest_id"] = max(items, key=lambda m: int(m["id"]))["id"]
            return httpx.Response(200, json={"data": items, "meta": meta})

        if request.method == "GET" and path.startswith("/2/tweets/"):
            body = self.posts.get(path.rsplit("/", 1)[1])
            if body is None:
                return httpx.Response(404, json={"title": "Not Found"})
            return httpx.Response(200, json=body)

        if request.method == "POST" and path == "/2/tweets":
            self.replies.append(json.loads(request.content))
            return httpx.Response(201, json={"data": {"id": f"reply-{len(self.replies)}"}})

        if request.method == "POST" and path == "/2/media/upload":
            command = request.url.params["command"]
            self.upload_commands.append(command)
            if command == "INIT":
                return httpx.Response(200, json={"data": {"id": f"media-{self.upload_commands.count('INIT')}"}})
            return httpx.Response(204)

        if request.method == "POST" and path == "/2/oauth2/token":
            self.token_requests.append(request.content.decode())
            return httpx.Response(
                200,
                json={"access_token": "rotated-access", "expires_in": 7200, "refresh_token": "r-2"},
            )

        return httpx.Response(404, json={"title": "Not Found"})


async def _no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def integration_social_config() -> SocialConfig:
    return SocialConfig(
        api_base_url="https://api.social.test",
        token_url="https://api.social.test/2/oauth2/token",
        access_token="tok",
        user_id="bot-1",
        refresh_token="r-1",
        client_id="cid",
        client_secret="csecret",
    )


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    path = tmp_path / "media"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest_asyncio.fixture
async def integration_store(tmp_path: Path, media_dir: Path):
    group = await create_store_group(
        str(tmp_path / "integration.db"),
        media_dir,
        "http://test/media",
    )
    yield group
    await group.close()


@pytest.fixture
def make_services(integration_store, platform, integration_social_config):
    """以真实 SocialClient/TokenClient 构建服务，generator 可替换"""

    def _make(generator=None, store_group=None) -> GatewayServices:
        transport = httpx.MockTransport(platform.handle)
        return GatewayServices(
            store_group=store_group or integration_store,
            social_client=SocialClient(integration_social_config, transport=transport),
            token_client=TokenClient(integration_social_config, transport=transport),
            generator=generator or EchoGenerationAdapter(),
            social_config=integration_social_config,
            rate_limit_config=RateLimitConfig(max_requests=5, window_s=3600),
            sleep=_no_sleep,
        )

    return _make


@pytest_asyncio.fixture
async def integration_services(make_services):
    services = make_services()
    yield services
    await services.aclose()


@pytest_asyncio.fixture
async def integration_app(integration_store, integration_services, media_dir, monkeypatch):
    """集成测试用 FastAPI app（绕过 lifespan）"""
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.setenv("MENTIONBOT_MEDIA_DIR", str(media_dir))

    from mentionbot.gateway.main import create_app

    app = create_app()
    app.state.store_group = integration_store
    app.state.services = integration_services
    yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
