"""Provider 包测试 fixtures"""

import base64

import pytest
from mentionbot.core.models import PromptPart

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"


@pytest.fixture
def prompt_parts() -> list[PromptPart]:
    """标准生成请求：引用段 + 原文图片 + 原文文本"""
    return [
        PromptPart.of_text("<content>"),
        PromptPart.of_image_url("https://img.test/cat.jpg"),
        PromptPart.of_text("draw this cat as pixel art"),
        PromptPart.of_text("</content>"),
    ]


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def png_data_url() -> str:
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")
