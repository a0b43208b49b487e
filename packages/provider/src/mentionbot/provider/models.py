"""数据模型 -- TokenUsage + GenerationResult

所有生成客户端（LiteLLM、Echo）统一返回 GenerationResult。
"""

from mentionbot.core.models import GeneratedMedia
from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token 使用统计

    key 命名对齐 OpenAI/LiteLLM 行业标准：
    prompt_tokens / completion_tokens / total_tokens
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class GenerationResult(BaseModel):
    """一次内容生成的结果：回复文本 + 可选的生成媒体"""

    text: str = Field(default="", description="生成的回复文本")
    media: list[GeneratedMedia] = Field(default_factory=list, description="生成的媒体")

    # 路由信息
    model_name: str = Field(default="", description="实际调用的模型名称")
    provider: str = Field(default="", description="实际 provider")

    duration_ms: int = Field(default=0, ge=0, description="端到端耗时（毫秒）")
    token_usage: TokenUsage = Field(default_factory=TokenUsage)

    cost_usd: float = Field(default=0.0, ge=0.0, description="本次调用的 USD 成本")
    cost_unavailable: bool = Field(default=False)

    # 降级信息
    is_fallback: bool = Field(default=False, description="是否为降级调用")
    fallback_reason: str = Field(default="", description="降级原因说明")

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.media
