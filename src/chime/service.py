"""对外入口

NotificationService 把模板注册表、提醒存储、投递器和调度器组装在一起，
提供 configure_templates / schedule_reminder / run_due_reminders / send_notification 四个操作。
schedule_reminder 和 configure_templates 可以在一次扫描进行中随时调用。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from chime.channels.base import SystemNotifier
from chime.datamodel import InvalidInputError, Reminder, ReminderStatus
from chime.dispatcher import Dispatcher
from chime.events import Bus, E, bus as default_bus
from chime.logger import logger
from chime.metrics import RuntimeMetrics, runtime_metrics
from chime.scheduler import DeliverFunc, ReminderScheduler
from chime.storage.kv import KeyValueBackend
from chime.storage.reminder import ReminderStore
from chime.templates import TemplateRegistry
from chime.utils import iso_string, make_id, now_utc, parse_timestamp

__all__ = ["NotificationService", "configure_service", "require_service"]


class NotificationService:
    def __init__(
        self,
        backend: KeyValueBackend,
        store_key: str = "reminders_v1",
        notifier: Optional[SystemNotifier] = None,
        registry: Optional[TemplateRegistry] = None,
        deliver: Optional[DeliverFunc] = None,
        clock: Callable[[], datetime] = now_utc,
        default_tz: str = "UTC",
        bus: Bus = default_bus,
        metrics: RuntimeMetrics = runtime_metrics,
    ) -> None:
        self.registry = registry or TemplateRegistry()
        self.store = ReminderStore(backend, key=store_key)
        self.dispatcher = Dispatcher(self.registry, notifier=notifier, bus=bus, metrics=metrics)
        self.scheduler = ReminderScheduler(
            self.store,
            deliver or self.dispatcher.send_notification,
            clock=clock,
            default_tz=default_tz,
            bus=bus,
            metrics=metrics,
        )
        self.clock = clock
        self.default_tz = default_tz
        self.bus = bus
        self.metrics = metrics

    def configure_templates(self, templates: Mapping[str, Any]) -> None:
        self.registry.configure(templates)

    async def schedule_reminder(
        self,
        at: Any,
        payload: Any = None,
        reminder_id: Optional[str] = None,
    ) -> str:
        """新建提醒或按 id 更新 at/payload，返回提醒 id。

        更新时不会重置 attempts、createdAt 和 status。
        """
        if at is None or at == "":
            raise InvalidInputError('Invalid reminder: missing "at" field.')
        at_dt = parse_timestamp(at, self.default_tz)
        if at_dt is None:
            raise InvalidInputError('Invalid "at" date.')

        rid = str(reminder_id) if reminder_id else make_id()
        reminders = await self.store.load()
        index = next((i for i, r in enumerate(reminders) if r.id == rid), -1)

        if index >= 0:
            existing = reminders[index]
            scheduled = Reminder(
                id=existing.id,
                at=iso_string(at_dt),
                payload=payload if payload is not None else existing.payload,
                attempts=existing.attempts,
                status=existing.status,
                created_at=existing.created_at,
                last_attempt_at=existing.last_attempt_at,
                sent_at=existing.sent_at,
            )
            reminders[index] = scheduled
            logger.debug(f"更新提醒: id={rid}, at={scheduled.at}")
        else:
            scheduled = Reminder(
                id=rid,
                at=iso_string(at_dt),
                payload=payload,
                attempts=0,
                status=ReminderStatus.PENDING,
                created_at=iso_string(self.clock()),
            )
            reminders.append(scheduled)
            logger.debug(f"创建提醒: id={rid}, at={scheduled.at}")

        await self.store.save(reminders)
        try:
            self.bus.emit(E.REMINDER_SCHEDULED, scheduled)
        except Exception as e:
            logger.debug(f"事件广播失败: {E.REMINDER_SCHEDULED}, {e!r}")
        return rid

    async def run_due_reminders(self, now: Any = None) -> None:
        await self.scheduler.run_due_reminders(now)

    async def send_notification(self, target: Any, payload: Any) -> None:
        await self.dispatcher.send_notification(target, payload)

    async def list_reminders(self) -> list[Reminder]:
        return await self.store.load()


_service: NotificationService | None = None


def configure_service(service: NotificationService) -> None:
    global _service
    _service = service


def require_service() -> NotificationService:
    if _service is None:
        raise RuntimeError("NotificationService 尚未配置，请先调用 configure_service()")
    return _service
