"""packages/social 测试配置 -- httpx.MockTransport 路由"""

from collections.abc import Callable

import httpx
import pytest
from mentionbot.social import SocialConfig


class RecordingTransport:
    """按 (method, path) 返回预设响应，并记录所有请求"""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, method: str, path: str, response) -> None:
        """response 可以是 httpx.Response 或以 request 为参数的函数"""
        if isinstance(response, httpx.Response):
            self._routes[(method, path)] = lambda _request, resp=response: resp
        else:
            self._routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"title": "Not Found"})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def social_config() -> SocialConfig:
    return SocialConfig(
        api_base_url="https://api.social.test",
        token_url="https://api.social.test/2/oauth2/token",
        client_id="client id",
        client_secret="s3cr3t&",
    )
