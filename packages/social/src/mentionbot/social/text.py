"""文本归一化：移除 @提及 和 t.co 短链"""

import re

_MENTION_RE = re.compile(r"@\S+")
_TCO_URL_RE = re.compile(r"https://t\.co/\w+")


def filter_mentions(text: str) -> str:
    return _MENTION_RE.sub("", text).strip()


def filter_tco_urls(text: str) -> str:
    return _TCO_URL_RE.sub("", text).strip()


def normalize_text(text: str) -> str:
    """先去提及再去短链，首尾空白一并去掉"""
    return filter_tco_urls(filter_mentions(text))
