"""
一个简单的运行时指标收集类，用于统计扫描次数、投递结果等信息，方便后续扩展和监控。
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass
class RuntimeMetrics:
    run_count: int = 0
    delivered_count: int = 0
    delivery_failed_count: int = 0
    reminder_failed_count: int = 0
    timestamp_fault_count: int = 0
    notification_count: int = 0
    last_run_at: float | None = None

    def record_run(self) -> None:
        self.run_count += 1
        self.last_run_at = time.time()

    def record_delivered(self) -> None:
        self.delivered_count += 1

    def record_delivery_failed(self, exhausted: bool = False) -> None:
        self.delivery_failed_count += 1
        if exhausted:
            self.reminder_failed_count += 1

    def record_timestamp_fault(self) -> None:
        self.timestamp_fault_count += 1
        self.reminder_failed_count += 1

    def record_notification(self) -> None:
        self.notification_count += 1

    def snapshot(self) -> dict:
        return {
            "run_count": self.run_count,
            "delivered_count": self.delivered_count,
            "delivery_failed_count": self.delivery_failed_count,
            "reminder_failed_count": self.reminder_failed_count,
            "timestamp_fault_count": self.timestamp_fault_count,
            "notification_count": self.notification_count,
            "last_run_at_epoch": self.last_run_at,
            "last_run_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_run_at))
                if self.last_run_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


__all__ = ["RuntimeMetrics", "runtime_metrics"]
