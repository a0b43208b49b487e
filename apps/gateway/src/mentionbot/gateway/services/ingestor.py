"""MentionIngestor -- 提及轮询与任务创建

读取游标 -> 拉取游标之后的提及 -> 按 ID 升序逐条幂等建任务并派发
-> 整批处理完后推进游标。游标写入前崩溃时，下次轮询会重新拉到同一批提及，
create_task 按 mention_id 去重，因此只会重复派发，不会重复建任务。
"""

import structlog
from mentionbot.core.config import MENTION_CURSOR_KEY
from mentionbot.core.errors import TerminalError
from mentionbot.core.models import Mention
from mentionbot.core.store import KeyValueStore, TaskStore
from pydantic import BaseModel, Field

from .protocols import CredentialSource, Dispatcher, MentionFeed

log = structlog.get_logger()


def mention_sort_key(mention_id: str) -> tuple[int, int, str]:
    """数字 ID 按数值比较（长度不同的字符串比较会出错），非数字 ID 排在其后按字典序"""
    if mention_id.isdigit():
        return (0, int(mention_id), "")
    return (1, 0, mention_id)


class IngestResult(BaseModel):
    """一次轮询的结果"""

    created: int = 0
    existing: int = 0
    cursor: str | None = Field(default=None, description="轮询结束后的游标")
    advanced: bool = False
    task_ids: list[str] = Field(default_factory=list)


class MentionIngestor:
    """提及摄取器"""

    def __init__(
        self,
        store: TaskStore,
        kv_store: KeyValueStore,
        feed: MentionFeed,
        credentials: CredentialSource,
        dispatcher: Dispatcher,
    ) -> None:
        self._store = store
        self._kv = kv_store
        self._feed = feed
        self._credentials = credentials
        self._dispatcher = dispatcher

    async def poll(self) -> IngestResult:
        """执行一次轮询

        Raises:
            TerminalError: 凭证缺失
        """
        cursor = await self._kv.get(MENTION_CURSOR_KEY)
        credentials = await self._credentials.get_credentials()
        if credentials is None:
            raise TerminalError("Failed to get credentials")

        page = await self._feed.list_mentions_since(
            credentials.user_id,
            cursor,
            credentials.access_token,
        )
        mentions: list[Mention] = sorted(page.items, key=lambda m: mention_sort_key(m.id))

        result = IngestResult(cursor=cursor)
        newest = cursor
        for mention in mentions:
            task, created = await self._store.create_task(
                source_content_id=mention.id,
                mention_id=mention.id,
            )
            if created:
                result.created += 1
            else:
                result.existing += 1
            result.task_ids.append(task.task_id)
            self._dispatcher.dispatch(task.task_id)

            if newest is None or mention_sort_key(mention.id) > mention_sort_key(newest):
                newest = mention.id

        if newest is not None and newest != cursor:
            await self._kv.put(MENTION_CURSOR_KEY, newest)
            result.cursor = newest
            result.advanced = True

        log.info(
            "mentions_polled",
            fetched=len(mentions),
            created=result.created,
            existing=result.existing,
            cursor=result.cursor,
            advanced=result.advanced,
        )
        return result
