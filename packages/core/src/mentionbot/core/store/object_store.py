"""本地对象存储 -- 生成媒体的内容寻址文件存储

文件名为内容的 SHA-256 + 由 MIME 类型推导的扩展名，
相同内容重复上传得到相同 URL。
"""

import asyncio
import hashlib
import mimetypes
from pathlib import Path

import structlog

log = structlog.get_logger()

# mimetypes 对部分图片类型给出的扩展名不常用，这里固定
_EXTENSION_OVERRIDES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def compute_hash_and_size(content: bytes) -> tuple[str, int]:
    """计算 SHA-256 hash 和内容大小"""
    return hashlib.sha256(content).hexdigest(), len(content)


def extension_for(mime_type: str) -> str:
    """由 MIME 类型推导文件扩展名，未知类型返回 .bin"""
    mime_type = mime_type.split(";", 1)[0].strip().lower()
    if mime_type in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[mime_type]
    return mimetypes.guess_extension(mime_type) or ".bin"


class LocalObjectStore:
    """把媒体写入本地目录，并返回可公开访问的 URL"""

    def __init__(self, media_dir: Path, public_base_url: str) -> None:
        self._media_dir = media_dir
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def media_dir(self) -> Path:
        return self._media_dir

    async def upload(self, data: bytes, mime_type: str) -> str:
        """写入媒体文件

        Returns:
            公开访问 URL：{public_base_url}/{sha256}{ext}
        """
        digest, size = compute_hash_and_size(data)
        name = f"{digest}{extension_for(mime_type)}"
        path = self._media_dir / name
        if not path.exists():
            await asyncio.to_thread(self._write, path, data)
        log.info("media_uploaded", name=name, size=size, mime_type=mime_type)
        return f"{self._public_base_url}/{name}"

    def get_path(self, name: str) -> Path | None:
        """根据文件名定位本地文件，不存在返回 None"""
        path = self._media_dir / Path(name).name
        return path if path.is_file() else None

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
