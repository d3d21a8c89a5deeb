"""键值存储后端

ReminderStore 只依赖 get/set 两个操作，整个提醒集合以一段文本存放在一个键下。
多个 ReminderStore 共享同一个后端时，相当于多个标签页共享同一份 localStorage。
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

import aiosqlite

from chime.logger import logger

__all__ = ["KeyValueBackend", "SqliteBackend", "MemoryBackend", "StorageQuotaError"]


class StorageQuotaError(RuntimeError):
    """写入超出后端配额"""


class KeyValueBackend(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class SqliteBackend:
    """基于 aiosqlite 的 kv_store 表，连接由 storage.db_config 创建"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def get(self, key: str) -> Optional[str]:
        async with self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        await self._conn.execute(
            "INSERT INTO kv_store (key, value, updated_at_utc) VALUES (?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at_utc = CURRENT_TIMESTAMP",
            (key, value),
        )
        await self._conn.commit()
        logger.trace(f"kv_store 写入: key={key}, size={len(value)}")


class MemoryBackend:
    """进程内后端，quota_bytes 用来模拟浏览器存储的配额"""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self.data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            size = sum(len(v.encode("utf-8")) for k, v in self.data.items() if k != key)
            size += len(value.encode("utf-8"))
            if size > self.quota_bytes:
                raise StorageQuotaError(f"超出配额: {size} > {self.quota_bytes} bytes")
        self.data[key] = value
