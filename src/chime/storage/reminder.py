"""提醒集合的持久化

整个集合作为一个 JSON 数组存放在同一个键下，没有局部写入：
每次修改都是 读取 -> 内存中修改 -> 整体写回。
读取失败一律退化为空集合，写入失败只记日志。
"""

from __future__ import annotations

import json
from typing import List

from chime.datamodel import Reminder
from chime.logger import logger
from chime.storage.kv import KeyValueBackend

__all__ = ["ReminderStore"]


class ReminderStore:
    def __init__(self, backend: KeyValueBackend, key: str = "reminders_v1") -> None:
        self.backend = backend
        self.key = key

    async def load(self) -> List[Reminder]:
        """读取全部提醒，任何异常都返回空列表"""
        try:
            raw = await self.backend.get(self.key)
        except Exception as e:
            logger.warning(f"读取提醒失败, 按空集合处理: {e!r}")
            return []
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"提醒数据无法解析, 按空集合处理: key={self.key}")
            return []
        if not isinstance(parsed, list):
            logger.warning(f"提醒数据不是数组, 按空集合处理: key={self.key}")
            return []

        reminders: List[Reminder] = []
        for index, item in enumerate(parsed):
            if not isinstance(item, dict):
                logger.warning(f"跳过非法提醒记录: index={index}")
                continue
            try:
                reminders.append(Reminder.from_dict(item))
            except ValueError as e:
                logger.warning(f"跳过非法提醒记录: index={index}, {e}")
        return reminders

    async def save(self, reminders: List[Reminder]) -> bool:
        """整体写回，失败(如超出配额)时返回 False，不抛出"""
        try:
            raw = json.dumps([r.to_dict() for r in reminders], ensure_ascii=False)
            await self.backend.set(self.key, raw)
        except Exception as e:
            logger.warning(f"保存提醒失败: {e!r}")
            return False
        logger.trace(f"已保存提醒: count={len(reminders)}")
        return True
