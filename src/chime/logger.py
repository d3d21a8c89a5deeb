"""日志模块

级别支持: TRACE/DEBUG/INFO/WARNING/ERROR/CRITICAL (兼容别名 FATAL -> CRITICAL)

使用：先调用 setup_logging 配置日志，然后 logger.info(...) 等写日志。
未调用 setup_logging 时沿用 loguru 默认的 stderr 输出。
uvicorn、aiosqlite 等使用标准库 logging 的组件，经 intercept_stdlib_logging 转发到 loguru。
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, Literal, Union

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "FATAL"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "<level>{level:<8}</level> "
    "<cyan>{name}:{line}</cyan> - <level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

_LEVEL_ALIAS = {"FATAL": "CRITICAL", "WARN": "WARNING"}
_KNOWN_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}

STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "aiosqlite")


def normalize_level(level: Union[str, LogLevel, None], fallback: str = "INFO") -> str:
    name = _LEVEL_ALIAS.get(str(level).strip().upper(), str(level).strip().upper())
    return name if name in _KNOWN_LEVELS else fallback


class _InterceptHandler(logging.Handler):
    """把标准库 logging 的记录转交给 loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Union[str, int] = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过 logging 内部的栈帧，让 loguru 记录真正的调用位置
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def intercept_stdlib_logging(names: Iterable[str] = STDLIB_LOGGERS, level: str = "INFO") -> None:
    # 标准库没有 TRACE/SUCCESS
    std_level = {"TRACE": "DEBUG", "SUCCESS": "INFO"}.get(normalize_level(level), normalize_level(level))
    handler = _InterceptHandler()
    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.setLevel(std_level)
        std_logger.propagate = False


def _file_sink(path: Path, level: str, retention: str) -> dict:
    return {
        "sink": path,
        "level": level,
        "format": FILE_FORMAT,
        "rotation": "10 MB",
        "retention": retention,
        "compression": "zip",
        "encoding": "utf-8",
        "enqueue": True,
    }


def setup_logging(
    log_level: LogLevel,
    log_file: Union[str, Path, None],
    console_level: LogLevel = "INFO",
) -> None:
    """配置控制台与文件输出，log_file 为空时只输出到控制台；
    另外单独写一份 *_error 文件，只保留 ERROR 及以上"""
    handlers: list[dict] = [
        {
            "sink": sys.stderr,
            "level": normalize_level(console_level),
            "format": CONSOLE_FORMAT,
            "colorize": True,
        },
    ]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(_file_sink(path, normalize_level(log_level), "30 days"))
        handlers.append(_file_sink(path.with_name(f"{path.stem}_error{path.suffix}"), "ERROR", "90 days"))

    logger.configure(handlers=handlers)
    intercept_stdlib_logging(level=normalize_level(log_level))


__all__ = ["setup_logging", "normalize_level", "intercept_stdlib_logging", "logger"]
