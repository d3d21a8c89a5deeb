from __future__ import annotations

import random
import uuid
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from chime.logger import logger

__all__ = ["now_utc", "parse_timestamp", "iso_string", "make_id", "pseudo_uuid4"]


def now_utc() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, default_tz: str = "UTC") -> datetime | None:
    """解析 ISO-8601 字符串或 datetime，失败返回 None。

    不带时区的时间按 default_tz 解释，结果统一为带时区的 UTC 时间。
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        try:
            dt = dt.replace(tzinfo=ZoneInfo(default_tz))
        except (KeyError, ValueError):
            dt = dt.replace(tzinfo=timezone.utc)
    # 换算成 UTC 后可能超出 datetime 的表示范围，例如 0001-01-01T00:00:00+01:00
    try:
        return dt.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def iso_string(dt: datetime) -> str:
    """格式: 'YYYY-MM-DDTHH:MM:SS.mmmZ'"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def pseudo_uuid4() -> str:
    """非加密随机数拼出的 v4 形状标识符，不做碰撞检测"""
    chars = []
    for c in "xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx":
        if c == "x":
            chars.append(format(random.randrange(16), "x"))
        elif c == "y":
            chars.append(format((random.randrange(16) & 0x3) | 0x8, "x"))
        else:
            chars.append(c)
    return "".join(chars)


def make_id(uuid_source=uuid.uuid4) -> str:
    """生成提醒 ID，优先使用系统随机源的 UUID"""
    try:
        return str(uuid_source())
    except Exception as e:
        logger.warning(f"UUID 生成失败, 改用伪随机 ID: {e!r}")
        return pseudo_uuid4()
