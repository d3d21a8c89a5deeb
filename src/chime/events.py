"""事件总线模块，定义了事件总线类 Bus 及事件名集合 E

应用内通知(E.NOTIFICATION)就是通过这里广播给 UI 等订阅者的。
处理器抛出的异常会被 pyee 转成 "error" 事件；Bus 默认注册了一个
"error" 处理器把它写进日志，避免订阅者的问题影响发布方。
"""

from __future__ import annotations

from typing import Any, Callable

from pyee.asyncio import AsyncIOEventEmitter

from chime.logger import logger

Handler = Callable[..., Any]


# 事件名集中定义
class E:
    NOTIFICATION = "chime.notification"
    REMINDER_SCHEDULED = "reminder.scheduled"
    REMINDER_SENT = "reminder.sent"
    REMINDER_FAILED = "reminder.failed"


class Bus(AsyncIOEventEmitter):
    def __init__(self) -> None:
        super().__init__()
        super().on("error", self._log_handler_error)

    @staticmethod
    def _log_handler_error(exc: BaseException) -> None:
        logger.warning(f"事件处理器执行失败: {exc!r}")

    def on(self, event: str) -> Callable[[Handler], Handler]:
        """注册事件处理器装饰器"""
        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {getattr(handler, '__name__', handler)}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()

__all__ = ["Bus", "bus", "E"]
