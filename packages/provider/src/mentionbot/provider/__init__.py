"""mentionbot Provider -- 内容生成服务抽象层

packages/provider 的公开接口导出。
"""

from .client import LiteLLMClient, build_messages
from .config import ProviderConfig, build_generation_client, load_provider_config
from .echo_adapter import EchoGenerationAdapter
from .exceptions import EmptyGenerationError, ProviderError, ProxyUnreachableError
from .fallback import FallbackManager
from .models import GenerationResult, TokenUsage
from .usage import UsageParser, decode_data_url

__all__ = [
    "GenerationResult",
    "TokenUsage",
    "LiteLLMClient",
    "build_messages",
    "UsageParser",
    "decode_data_url",
    "FallbackManager",
    "EchoGenerationAdapter",
    "ProviderConfig",
    "load_provider_config",
    "build_generation_client",
    "ProviderError",
    "ProxyUnreachableError",
    "EmptyGenerationError",
]
