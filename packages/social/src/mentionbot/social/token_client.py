"""TokenClient -- OAuth2 refresh_token 授权换取新的 access token"""

import base64
from urllib.parse import quote

import httpx
import structlog
from mentionbot.core.models import TokenGrant

from .config import SocialConfig
from .exceptions import TokenRefreshError

log = structlog.get_logger()


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """client_id / client_secret 先做 URL 编码再拼 Basic 认证头"""
    raw = f"{quote(client_id, safe='')}:{quote(client_secret, safe='')}"
    return "Basic " + base64.b64encode(raw.encode()).decode("ascii")


class TokenClient:
    """OAuth2 token 端点客户端"""

    def __init__(
        self,
        config: SocialConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_url = config.token_url
        self._timeout_s = config.timeout_s
        self._transport = transport

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> TokenGrant:
        """用 refresh token 换取新的 access token

        Raises:
            TokenRefreshError: 网络错误或 token 端点返回非 2xx
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s,
                transport=self._transport,
            ) as http_client:
                resp = await http_client.post(
                    self._token_url,
                    data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                    headers={"Authorization": basic_auth_header(client_id, client_secret)},
                )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"token refresh failed: {e}") from e

        if resp.is_error:
            log.warning("token_refresh_rejected", status_code=resp.status_code)
            raise TokenRefreshError(
                f"token refresh failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )

        grant = TokenGrant.model_validate(resp.json())
        log.info(
            "token_refreshed",
            expires_in=grant.expires_in,
            refresh_token_rotated=grant.refresh_token is not None,
        )
        return grant
