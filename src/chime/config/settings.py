import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from chime.logger import logger

load_dotenv()

__all__ = [
    "REMINDER_STORE_KEY", "DB_PATH",
    "DEFAULT_TIMEZONE", "SCAN_INTERVAL_SECONDS",
    "ENABLE_DESKTOP_NOTIFY", "APP_NAME",
    "ENABLE_ADMIN_HTTP", "ADMIN_HTTP_HOST", "ADMIN_HTTP_PORT", "ADMIN_AUTH_TOKEN",
    "LOG_FILE", "LOG_LEVEL", "CONSOLE_LOG_LEVEL",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_number(name: str, default: float, cast=float):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"{name} 非法: {raw!r}, 已回退到 {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} 必须大于 0, 已回退到 {default}")
        return default
    return value


# 存储
REMINDER_STORE_KEY = os.getenv("REMINDER_STORE_KEY", "reminders_v1").strip() or "reminders_v1"
DB_PATH = os.getenv("DB_PATH", "data/chime.db")

# 调度
# 不带时区的时间戳按此时区解释
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC").strip() or "UTC"
try:
    ZoneInfo(DEFAULT_TIMEZONE)
except (ZoneInfoNotFoundError, ValueError):
    logger.warning(f"DEFAULT_TIMEZONE 非法: {DEFAULT_TIMEZONE}, 已回退到 UTC")
    DEFAULT_TIMEZONE = "UTC"

SCAN_INTERVAL_SECONDS = _parse_number("SCAN_INTERVAL_SECONDS", 30.0)

# 系统通知
ENABLE_DESKTOP_NOTIFY = _parse_bool("ENABLE_DESKTOP_NOTIFY", True)
APP_NAME = os.getenv("APP_NAME", "Chime")

# Admin API
ENABLE_ADMIN_HTTP = _parse_bool("ENABLE_ADMIN_HTTP", False)
ADMIN_HTTP_HOST = os.getenv("ADMIN_HTTP_HOST", "127.0.0.1")
ADMIN_HTTP_PORT = _parse_number("ADMIN_HTTP_PORT", 18090, cast=int)
ADMIN_AUTH_TOKEN = os.getenv("ADMIN_AUTH_TOKEN", "")

# 日志
LOG_FILE = os.getenv("LOG_FILE", "logs/chime.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
CONSOLE_LOG_LEVEL = os.getenv("CONSOLE_LOG_LEVEL", "INFO")
