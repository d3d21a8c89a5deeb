"""提醒调度

每次 run_due_reminders 按存储顺序扫描一遍提醒，对到期的逐个投递，
每一次状态变化都立即整体写回存储：

    pending --到期--> sending --成功--> sent
                              --失败--> pending (attempts < MAX_ATTEMPTS)
                              --失败--> failed  (attempts == MAX_ATTEMPTS)
    pending --at 无法解析--> failed

投递前先写入 sending，让同时运行的其他上下文能看到进行中的状态。
sending 不是锁，到期的 sending 提醒会被再次投递。
这只能缩小、不能消除两个上下文同时投递同一提醒的窗口，因此投递语义是至少一次。
没有内部定时器，需要外部(main_loop 或调用方)周期性驱动。
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, List

from chime.datamodel import MAX_ATTEMPTS, DeliveryOutcome, Reminder, ReminderStatus
from chime.events import Bus, E, bus as default_bus
from chime.logger import logger
from chime.metrics import RuntimeMetrics, runtime_metrics
from chime.storage.reminder import ReminderStore
from chime.utils import iso_string, now_utc, parse_timestamp

__all__ = ["ReminderScheduler", "DeliverFunc", "main_loop", "get_status"]

DeliverFunc = Callable[[Any, Any], Awaitable[None]]

__shutdown_event: asyncio.Event | None = None
__last_check_at_epoch: float | None = None


def get_status() -> dict[str, object]:
    running = __shutdown_event is not None and not __shutdown_event.is_set()
    return {
        "running": running,
        "last_check_at_epoch": __last_check_at_epoch,
    }


def _delivery_target(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("target")
    return None


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        deliver: DeliverFunc,
        clock: Callable[[], datetime] = now_utc,
        default_tz: str = "UTC",
        bus: Bus = default_bus,
        metrics: RuntimeMetrics = runtime_metrics,
    ) -> None:
        self.store = store
        self.deliver = deliver
        self.clock = clock
        self.default_tz = default_tz
        self.bus = bus
        self.metrics = metrics

    def _stamp(self) -> str:
        return iso_string(self.clock())

    async def _attempt(self, reminder: Reminder) -> DeliveryOutcome:
        try:
            await self.deliver(_delivery_target(reminder.payload), reminder.payload)
        except Exception as e:
            return DeliveryOutcome.failure(e)
        return DeliveryOutcome.success()

    def _emit(self, event: str, reminder: Reminder) -> None:
        try:
            self.bus.emit(event, reminder)
        except Exception as e:
            logger.debug(f"事件广播失败: {event}, {e!r}")

    async def run_due_reminders(self, now: datetime | None = None) -> None:
        current = parse_timestamp(now if now is not None else self.clock(), self.default_tz)
        if current is None:
            logger.warning(f"run_due_reminders 收到无法解析的 now: {now!r}, 使用当前时间")
            current = parse_timestamp(self.clock(), self.default_tz)
        self.metrics.record_run()

        reminders: List[Reminder] = await self.store.load()
        if not reminders:
            return

        for i, reminder in enumerate(reminders):
            # sent/failed 是终态；sending 到期后照常投递
            if reminder.is_terminal:
                continue

            scheduled = parse_timestamp(reminder.at, self.default_tz)
            if scheduled is None:
                reminders[i] = replace(
                    reminder,
                    attempts=reminder.attempts + 1,
                    last_attempt_at=self._stamp(),
                    status=ReminderStatus.FAILED,
                )
                await self.store.save(reminders)
                self.metrics.record_timestamp_fault()
                logger.warning(f"提醒时间无法解析, 标记为 failed: id={reminder.id}, at={reminder.at!r}")
                self._emit(E.REMINDER_FAILED, reminders[i])
                continue

            if scheduled > current:
                continue

            reminders[i] = replace(reminder, status=ReminderStatus.SENDING)
            await self.store.save(reminders)
            logger.trace(f"开始投递提醒: id={reminder.id}, attempts={reminder.attempts}")

            outcome = await self._attempt(reminder)
            stamp = self._stamp()
            if outcome.ok:
                reminders[i] = replace(
                    reminders[i],
                    status=ReminderStatus.SENT,
                    last_attempt_at=stamp,
                    sent_at=stamp,
                )
                await self.store.save(reminders)
                self.metrics.record_delivered()
                logger.debug(f"提醒已投递: id={reminder.id}")
                self._emit(E.REMINDER_SENT, reminders[i])
                continue

            attempts = reminder.attempts + 1
            exhausted = attempts >= MAX_ATTEMPTS
            reminders[i] = replace(
                reminders[i],
                attempts=attempts,
                last_attempt_at=stamp,
                status=ReminderStatus.FAILED if exhausted else ReminderStatus.PENDING,
            )
            await self.store.save(reminders)
            self.metrics.record_delivery_failed(exhausted=exhausted)
            if exhausted:
                logger.warning(f"提醒投递失败且已达上限, 标记为 failed: id={reminder.id}, error={outcome.error!r}")
                self._emit(E.REMINDER_FAILED, reminders[i])
            else:
                logger.info(f"提醒投递失败, 稍后重试: id={reminder.id}, attempts={attempts}/{MAX_ATTEMPTS}, error={outcome.error!r}")


async def main_loop(runner: Any, shutdown_event: asyncio.Event, interval: float = 30.0) -> None:
    """周期性调用 runner.run_due_reminders()，直到 shutdown_event 被设置"""
    global __shutdown_event, __last_check_at_epoch
    __shutdown_event = shutdown_event
    logger.info(f"Reminder 主循环已启动, 间隔 {interval} 秒")

    while not shutdown_event.is_set():
        __last_check_at_epoch = time.time()
        try:
            await runner.run_due_reminders()
        except Exception as e:
            logger.error(f"提醒扫描异常: {e!r}")

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("Reminder 主循环已关闭")
