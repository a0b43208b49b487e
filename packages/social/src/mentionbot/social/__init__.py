"""mentionbot Social -- 社交平台 API 客户端

packages/social 的公开接口导出。
"""

from .client import SocialClient, parse_source_content
from .config import SocialConfig, load_social_config
from .exceptions import SocialAPIError, TokenRefreshError
from .text import filter_mentions, filter_tco_urls, normalize_text
from .token_client import TokenClient, basic_auth_header

__all__ = [
    "SocialClient",
    "parse_source_content",
    "TokenClient",
    "basic_auth_header",
    "SocialConfig",
    "load_social_config",
    "SocialAPIError",
    "TokenRefreshError",
    "filter_mentions",
    "filter_tco_urls",
    "normalize_text",
]
