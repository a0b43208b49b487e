"""凭证读取与 OAuth2 刷新

access token / user id 优先取 KV 缓存，缺失时回退到配置。
刷新成功后 access token 写入 KV，TTL 比真实有效期短 30 秒；
平台轮换了 refresh token 时一并保存新值。
"""

import structlog
from mentionbot.core.config import (
    ACCESS_TOKEN_EXPIRY_MARGIN_S,
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ID_KEY,
)
from mentionbot.core.models import Credentials, TokenGrant
from mentionbot.core.store import KeyValueStore
from mentionbot.social import SocialConfig

log = structlog.get_logger()


class CredentialProvider:
    """流水线使用的凭证来源"""

    def __init__(self, kv_store: KeyValueStore, config: SocialConfig) -> None:
        self._kv = kv_store
        self._config = config

    async def get_credentials(self) -> Credentials | None:
        """access token 或 user id 任一缺失时返回 None"""
        access_token = (
            await self._kv.get(ACCESS_TOKEN_KEY)
            or self._config.access_token.get_secret_value()
        )
        user_id = await self._kv.get(USER_ID_KEY) or self._config.user_id
        if not access_token or not user_id:
            log.error(
                "credentials_missing",
                has_access_token=bool(access_token),
                has_user_id=bool(user_id),
            )
            return None
        return Credentials(access_token=access_token, user_id=user_id)


class CredentialRefresher:
    """周期性刷新 access token"""

    def __init__(self, kv_store: KeyValueStore, token_client, config: SocialConfig) -> None:
        """
        Args:
            kv_store: 凭证缓存
            token_client: 提供 refresh_token(refresh_token, client_id, client_secret)
            config: 社交平台配置（client id/secret 与初始 refresh token）
        """
        self._kv = kv_store
        self._token_client = token_client
        self._config = config

    async def refresh(self) -> bool:
        """刷新 access token

        Returns:
            True 刷新成功；False 刷新所需配置缺失

        Raises:
            TokenRefreshError: token 端点拒绝或不可达
        """
        refresh_token = (
            await self._kv.get(REFRESH_TOKEN_KEY)
            or self._config.refresh_token.get_secret_value()
        )
        client_id = self._config.client_id
        client_secret = self._config.client_secret.get_secret_value()
        if not refresh_token or not client_id or not client_secret:
            log.warning(
                "token_refresh_skipped",
                has_refresh_token=bool(refresh_token),
                has_client_id=bool(client_id),
                has_client_secret=bool(client_secret),
            )
            return False

        grant: TokenGrant = await self._token_client.refresh_token(
            refresh_token,
            client_id,
            client_secret,
        )
        ttl_s = max(grant.expires_in - ACCESS_TOKEN_EXPIRY_MARGIN_S, 1)
        await self._kv.put(ACCESS_TOKEN_KEY, grant.access_token, ttl_s=ttl_s)

        rotated = bool(grant.refresh_token) and grant.refresh_token != refresh_token
        if rotated:
            await self._kv.put(REFRESH_TOKEN_KEY, grant.refresh_token)
        log.info("access_token_refreshed", ttl_s=ttl_s, refresh_token_rotated=rotated)
        return True
