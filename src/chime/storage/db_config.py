import os

import aiosqlite

from chime.logger import logger

conn: aiosqlite.Connection | None = None

_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at_utc TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


async def connect(db_path: str) -> aiosqlite.Connection:
    """打开数据库并完成建表/升级，返回连接但不修改全局 conn"""
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    connection = await aiosqlite.connect(db_path)

    async with connection.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
        user_version = row[0]

    if user_version < 1:
        await connection.executescript(_SCHEMA_V1)
        await connection.execute("PRAGMA user_version = 1")
        logger.info(f"数据库已初始化: {db_path}")

    # 数据库升级逻辑可以在这里继续添加
    await connection.commit()
    return connection


async def init_db(db_path: str) -> aiosqlite.Connection:
    global conn
    conn = await connect(db_path)
    return conn


async def close_db() -> None:
    global conn
    if conn is not None:
        await conn.close()
        conn = None


__all__ = ["conn", "connect", "init_db", "close_db"]
