"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、媒体存储目录、限流窗口、KV 键名等可配置常量。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("MENTIONBOT_DATA_DIR", "data"))


def _env_int(name: str, default: int) -> int:
    """读取整型环境变量，非法值回退默认值"""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("invalid_int_config", env_var=name, value=raw, fallback=default)
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "MENTIONBOT_DB_PATH",
        str(_get_base_dir() / "sqlite" / "mentionbot.db"),
    )


def get_media_dir() -> Path:
    """获取生成媒体的本地对象存储目录"""
    return Path(
        os.environ.get(
            "MENTIONBOT_MEDIA_DIR",
            str(_get_base_dir() / "media"),
        )
    )


def get_media_public_url() -> str:
    """获取媒体对外访问的 URL 前缀"""
    return os.environ.get("MENTIONBOT_MEDIA_PUBLIC_URL", "http://localhost:8000/media")


def get_rate_limit_max_requests() -> int:
    """单用户在一个窗口内允许的最大请求数"""
    return _env_int("MENTIONBOT_RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS)


def get_rate_limit_window_s() -> int:
    """限流窗口长度（秒）"""
    return _env_int("MENTIONBOT_RATE_LIMIT_WINDOW_S", DEFAULT_RATE_LIMIT_WINDOW_S)


def get_scheduler_enabled() -> bool:
    """是否在网关进程内启动周期任务（提及轮询、凭证刷新）"""
    return _env_bool("MENTIONBOT_SCHEDULER_ENABLED", False)


def get_mention_poll_interval_s() -> int:
    return _env_int("MENTIONBOT_MENTION_POLL_INTERVAL_S", 60)


def get_token_refresh_interval_s() -> int:
    return _env_int("MENTIONBOT_TOKEN_REFRESH_INTERVAL_S", 60 * 60)


def get_claim_with_cas() -> bool:
    """进入 PROCESSING 时是否使用条件写（compare-and-swap）"""
    return _env_bool("MENTIONBOT_CLAIM_WITH_CAS", False)


# 限流默认值：窗口 12 小时，上限较高
DEFAULT_RATE_LIMIT_MAX_REQUESTS: int = 1000
DEFAULT_RATE_LIMIT_WINDOW_S: int = 60 * 60 * 12

# KV 缓存键名
MENTION_CURSOR_KEY: str = "last_mention_id"
ACCESS_TOKEN_KEY: str = "ACCESS_TOKEN"
REFRESH_TOKEN_KEY: str = "REFRESH_TOKEN"
USER_ID_KEY: str = "USER_ID"
RATE_LIMIT_KEY_PREFIX: str = "rate_limit:"

# access token 写入 KV 时比真实有效期提前过期的秒数
ACCESS_TOKEN_EXPIRY_MARGIN_S: int = 30
