"""SocialClient -- 社交平台 REST API 封装（httpx）

提及流、内容抓取（含作者/媒体/引用内容展开）、回复发布、媒体上传。
access token 按调用传入，凭证刷新后无需重建客户端。
所有 HTTP 失败统一转换为 SocialAPIError。
"""

import time
from typing import Any

import httpx
import structlog
from mentionbot.core.models import (
    MediaItem,
    Mention,
    MentionPage,
    PublishResult,
    ReferencedContent,
    SourceContent,
    UserInfo,
)

from .config import SocialConfig
from .exceptions import SocialAPIError
from .text import normalize_text

log = structlog.get_logger()

# 内容抓取时展开作者、媒体和被引用内容的媒体
_CONTENT_QUERY = {
    "tweet.fields": "attachments,author_id,created_at,referenced_tweets",
    "expansions": "attachments.media_keys,author_id,referenced_tweets.id.attachments.media_keys",
    "media.fields": "url,width,height,type,preview_image_url,alt_text",
    "user.fields": "id,name,username",
}

MEDIA_CATEGORY = "tweet_image"


def _select_media(media_keys: list[str], media: list[dict[str, Any]]) -> list[MediaItem]:
    """按 media_key 从 includes.media 中挑出附件，保持 includes 的顺序"""
    wanted = set(media_keys)
    return [
        MediaItem(media_key=m["media_key"], type=m.get("type", "photo"), url=m.get("url"))
        for m in media
        if m.get("media_key") in wanted
    ]


def _describe_errors(body: dict[str, Any]) -> str:
    """拼接响应 errors[] 中的 detail（缺失时用 title）"""
    details = [
        e.get("detail") or e.get("title")
        for e in body.get("errors") or []
        if isinstance(e, dict)
    ]
    return "; ".join(d for d in details if d) or "empty response"


def parse_source_content(body: dict[str, Any]) -> SourceContent:
    """把内容详情响应转换为 SourceContent（文本已归一化）

    响应缺少 data（内容已删除、不可见，或只返回 errors）时按 404 处理，不可重试。
    """
    data = body.get("data")
    if not data:
        raise SocialAPIError(
            f"content not available: {_describe_errors(body)}",
            status_code=404,
        )
    includes = body.get("includes") or {}
    media = includes.get("media") or []

    author = None
    author_id = data.get("author_id")
    for user in includes.get("users") or []:
        if user.get("id") == author_id:
            author = UserInfo(
                id=user["id"],
                username=user.get("username", ""),
                name=user.get("name", ""),
            )
            break

    references: list[ReferencedContent] = []
    included = {t["id"]: t for t in includes.get("tweets") or [] if "id" in t}
    for ref in data.get("referenced_tweets") or []:
        ref_data = included.get(ref.get("id"))
        if ref_data is None:
            continue
        references.append(
            ReferencedContent(
                text=normalize_text(ref_data.get("text", "")),
                media=_select_media(
                    (ref_data.get("attachments") or {}).get("media_keys", []),
                    media,
                ),
            )
        )

    return SourceContent(
        text=normalize_text(data.get("text", "")),
        media=_select_media((data.get("attachments") or {}).get("media_keys", []), media),
        author=author,
        references=references,
    )


class SocialClient:
    """社交平台 API 客户端"""

    def __init__(
        self,
        config: SocialConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            config: 社交平台配置
            transport: 自定义 httpx transport（测试中注入 MockTransport）
        """
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_mentions_since(
        self,
        user_id: str,
        cursor: str | None,
        access_token: str,
    ) -> MentionPage:
        """查询 cursor 之后的提及；cursor 为 None 时不带 since_id"""
        params = {"since_id": cursor} if cursor else {}
        body = await self._request(
            "GET",
            f"/2/users/{user_id}/mentions",
            access_token,
            params=params,
        )
        items = [
            Mention(id=item["id"], text=item.get("text", ""))
            for item in (body.get("data") or [])
        ]
        newest_id = (body.get("meta") or {}).get("newest_id")
        return MentionPage(items=items, cursor=newest_id)

    async def get_content(self, content_id: str, access_token: str) -> SourceContent:
        """抓取原始内容及其作者、媒体、引用内容"""
        body = await self._request(
            "GET",
            f"/2/tweets/{content_id}",
            access_token,
            params=_CONTENT_QUERY,
        )
        content = parse_source_content(body)
        log.info(
            "content_fetched",
            content_id=content_id,
            text_length=len(content.text),
            media_count=len(content.media),
            reference_count=len(content.references),
        )
        return content

    async def reply(
        self,
        content_id: str,
        text: str,
        media_ids: list[str],
        access_token: str,
    ) -> PublishResult:
        """回复指定内容，media_ids 为空时只发文本"""
        payload: dict[str, Any] = {
            "text": text,
            "reply": {"in_reply_to_tweet_id": content_id},
        }
        if media_ids:
            payload["media"] = {"media_ids": media_ids}
        body = await self._request("POST", "/2/tweets", access_token, json=payload)
        response_id = (body.get("data") or {}).get("id")
        log.info("reply_published", content_id=content_id, response_id=response_id)
        return PublishResult(response_id=response_id)

    async def upload_media(self, data: bytes, mime_type: str, access_token: str) -> str:
        """分段上传媒体（INIT / APPEND / FINALIZE），返回 media id"""
        init = await self._request(
            "POST",
            "/2/media/upload",
            access_token,
            params={
                "command": "INIT",
                "total_bytes": str(len(data)),
                "media_type": mime_type,
                "media_category": MEDIA_CATEGORY,
            },
        )
        media_id = (init.get("data") or {}).get("id")
        if not media_id:
            raise SocialAPIError("media upload INIT returned no media id")

        await self._request(
            "POST",
            "/2/media/upload",
            access_token,
            params={"command": "APPEND", "media_id": media_id},
            data={"segment_index": "0"},
            files={"media": ("media", data, mime_type)},
        )
        await self._request(
            "POST",
            "/2/media/upload",
            access_token,
            params={"command": "FINALIZE", "media_id": media_id},
        )
        log.info("media_upload_finalized", media_id=media_id, size=len(data))
        return media_id

    async def _request(
        self,
        method: str,
        url: str,
        access_token: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """发送请求，返回 JSON body（204 或非 JSON 返回空 dict）

        Raises:
            SocialAPIError: 网络错误或非 2xx 响应
        """
        start_time = time.monotonic()
        try:
            resp = await self._http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            log.warning(
                "social_request_failed",
                method=method,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SocialAPIError(f"request failed: {method} {url}: {e}") from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if resp.is_error:
            log.warning(
                "social_api_error",
                method=method,
                url=url,
                status_code=resp.status_code,
                duration_ms=duration_ms,
            )
            raise SocialAPIError(
                f"API request failed: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        log.debug(
            "social_request_completed",
            method=method,
            url=url,
            status_code=resp.status_code,
            duration_ms=duration_ms,
        )
        if resp.status_code == 204 or "application/json" not in resp.headers.get(
            "content-type", ""
        ):
            return {}
        return resp.json()
