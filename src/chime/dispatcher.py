"""通知投递

send_notification 依次尝试三个通道，彼此隔离：
1. 系统通知 (仅在权限为 granted 时发送，default 时只请求一次权限)
2. 应用内事件 E.NOTIFICATION，无论系统通知结果如何都会广播
3. 诊断日志，最后总会执行

任何一个通道失败都不影响其他通道，整个调用不抛出异常。
"""

from __future__ import annotations

from typing import Any, Optional

from chime.channels.base import NotificationPermission, SystemNotifier
from chime.datamodel import Notification
from chime.events import Bus, E, bus as default_bus
from chime.logger import logger
from chime.metrics import RuntimeMetrics, runtime_metrics
from chime.templates import TemplateRegistry, render

__all__ = ["Dispatcher"]


def _coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _payload_field(payload: Any, name: str) -> Any:
    return payload.get(name) if isinstance(payload, dict) else None


class Dispatcher:
    def __init__(
        self,
        registry: TemplateRegistry,
        notifier: Optional[SystemNotifier] = None,
        bus: Bus = default_bus,
        metrics: RuntimeMetrics = runtime_metrics,
    ) -> None:
        self.registry = registry
        self.notifier = notifier
        self.bus = bus
        self.metrics = metrics
        self._permission_requested = False

    def compose(self, target: Any, payload: Any) -> Notification:
        """解析模板并与 payload 合并出最终内容"""
        renderer = self.registry.resolve(target, payload)
        rendered = render(renderer, payload)
        return Notification(
            title=_coalesce(rendered.get("title"), _payload_field(payload, "title"), "Notification"),
            body=_coalesce(rendered.get("body"), _payload_field(payload, "message")),
            data=_coalesce(rendered.get("data"), payload),
            target=target,
        )

    async def send_notification(self, target: Any, payload: Any) -> None:
        try:
            notification = self.compose(target, payload)
        except Exception as e:
            logger.warning(f"通知内容渲染失败, 使用兜底内容: {e!r}")
            notification = Notification(
                title=_coalesce(_payload_field(payload, "title"), "Notification"),
                body=_payload_field(payload, "message"),
                data=payload,
                target=target,
            )

        try:
            await self._show_system_notification(notification, payload)
        except Exception as e:
            logger.debug(f"系统通知发送失败: {e!r}")

        try:
            self.bus.emit(E.NOTIFICATION, notification)
            self.metrics.record_notification()
        except Exception as e:
            logger.debug(f"应用内通知广播失败: {e!r}")

        try:
            logger.info(f"Notification: title={notification.title!r}, body={notification.body!r}, target={target!r}")
        except Exception:
            pass

    async def _show_system_notification(self, notification: Notification, payload: Any) -> None:
        if self.notifier is None:
            return

        permission = self.notifier.permission
        if permission == NotificationPermission.DENIED:
            return
        if permission == NotificationPermission.DEFAULT:
            if self._permission_requested:
                return
            self._permission_requested = True
            permission = await self.notifier.request_permission()
            logger.debug(f"系统通知权限请求结果: {NotificationPermission(permission).value}")
            if permission != NotificationPermission.GRANTED:
                return

        await self.notifier.show(
            notification.title,
            notification.body,
            notification.data,
            icon=_payload_field(payload, "icon"),
            badge=_payload_field(payload, "badge"),
        )
