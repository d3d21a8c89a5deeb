from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest
from loguru import logger

from chime.channels.base import NotificationPermission, SystemNotifier
from chime.events import Bus
from chime.metrics import RuntimeMetrics
from chime.service import NotificationService
from chime.storage.kv import MemoryBackend
from chime.storage.reminder import ReminderStore


class FakeNotifier(SystemNotifier):
    def __init__(self, permission=NotificationPermission.GRANTED, grant_on_request=True, fail=False):
        self._permission = permission
        self.grant_on_request = grant_on_request
        self.fail = fail
        self.requests = 0
        self.shown: List[dict] = []

    @property
    def permission(self):
        return self._permission

    async def request_permission(self):
        self.requests += 1
        self._permission = NotificationPermission.GRANTED if self.grant_on_request else NotificationPermission.DENIED
        return self._permission

    async def show(self, title, body, data=None, icon=None, badge=None):
        if self.fail:
            raise RuntimeError("notifier broken")
        self.shown.append({"title": title, "body": body, "data": data, "icon": icon, "badge": badge})


class FixedClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FlakyDeliver:
    """前 failures 次调用抛异常，之后成功"""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls: List[tuple] = []

    async def __call__(self, target: Any, payload: Any) -> None:
        self.calls.append((target, payload))
        if len(self.calls) <= self.failures:
            raise RuntimeError(f"delivery failed #{len(self.calls)}")


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend) -> ReminderStore:
    return ReminderStore(backend, key="test_reminders")


@pytest.fixture
def bus() -> Bus:
    return Bus()


@pytest.fixture
def metrics() -> RuntimeMetrics:
    return RuntimeMetrics()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2020, 1, 2, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def make_service(backend, bus, metrics, clock, notifier):
    def factory(deliver: Optional[Any] = None, **kwargs) -> NotificationService:
        options = dict(
            store_key="test_reminders",
            notifier=notifier,
            deliver=deliver,
            clock=clock,
            bus=bus,
            metrics=metrics,
        )
        options.update(kwargs)
        return NotificationService(backend, **options)

    return factory


@pytest.fixture
def log_messages():
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="TRACE")
    yield messages
    logger.remove(handler_id)
