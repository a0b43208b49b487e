"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL（tasks / task_events / kv_cache）+ 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL，嵌套子对象以 JSON 文本存储
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id            TEXT PRIMARY KEY,
    source_content_id  TEXT NOT NULL,
    mention_id         TEXT NOT NULL,
    mention_url        TEXT,
    status             TEXT NOT NULL DEFAULT 'PENDING',
    created_at         TEXT NOT NULL,
    updated_at         TEXT NOT NULL,
    attempts           INTEGER NOT NULL DEFAULT 0,
    error_message      TEXT,
    source_text        TEXT,
    source_media       TEXT NOT NULL DEFAULT '[]',
    source_references  TEXT NOT NULL DEFAULT '[]',
    source_user        TEXT,
    result_media       TEXT NOT NULL DEFAULT '[]',
    reply_text         TEXT,
    response_id        TEXT
);
"""

_TASKS_INDEXES = [
    # 提及去重：同一 mention_id 只允许一行
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_mention_id ON tasks(mention_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_source_content_id ON tasks(source_content_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_updated_at ON tasks(updated_at DESC);",
]

# task_events 表 DDL（append-only）
_TASK_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS task_events (
    event_id  TEXT PRIMARY KEY,
    task_id   TEXT NOT NULL,
    task_seq  INTEGER NOT NULL,
    ts        TEXT NOT NULL,
    type      TEXT NOT NULL,
    payload   TEXT NOT NULL DEFAULT '{}',

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_TASK_EVENTS_INDEXES = [
    # 任务内事件序号唯一约束（确保 task_seq 严格单调递增）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_events_task_seq "
        "ON task_events(task_id, task_seq);"
    ),
]

# kv_cache 表 DDL，expires_at 为 epoch 秒，NULL 表示永不过期
_KV_CACHE_DDL = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_TASKS_DDL)
    await conn.execute(_TASK_EVENTS_DDL)
    await conn.execute(_KV_CACHE_DDL)

    for idx_sql in _TASKS_INDEXES + _TASK_EVENTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
