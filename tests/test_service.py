from datetime import datetime, timezone

import pytest

from chime.datamodel import InvalidInputError, ReminderStatus
from chime.events import E
from chime.service import configure_service, require_service
import chime.service as service_module

from conftest import FlakyDeliver


@pytest.mark.parametrize("at", [
    None, "", "not a date", "2020-13-45T00:00", 12345,
    "0001-01-01T00:00:00+01:00", "9999-12-31T23:30:00-01:00",
])
async def test_schedule_rejects_missing_or_invalid_at(make_service, backend, at):
    service = make_service()
    with pytest.raises(InvalidInputError):
        await service.schedule_reminder(at, {"title": "x"})
    assert backend.data == {}


async def test_schedule_creates_pending_reminder(make_service, clock):
    service = make_service()
    rid = await service.schedule_reminder("2020-01-01T00:00", {"title": "Hi"})

    [r] = await service.list_reminders()
    assert r.id == rid
    assert len(rid) == 36
    assert r.at == "2020-01-01T00:00:00.000Z"
    assert r.status is ReminderStatus.PENDING
    assert r.attempts == 0
    assert r.created_at == "2020-01-02T00:00:00.000Z"
    assert r.last_attempt_at is None and r.sent_at is None


async def test_schedule_accepts_datetime_and_offsets(make_service):
    service = make_service()
    await service.schedule_reminder(datetime(2020, 1, 1, 8, tzinfo=timezone.utc), None, reminder_id="a")
    await service.schedule_reminder("2020-01-01T09:00:00+01:00", None, reminder_id="b")
    a, b = await service.list_reminders()
    assert a.at == b.at == "2020-01-01T08:00:00.000Z"


async def test_naive_timestamp_uses_default_timezone(make_service):
    service = make_service(default_tz="Asia/Shanghai")
    await service.schedule_reminder("2020-01-01T08:00", None, reminder_id="a")
    [r] = await service.list_reminders()
    assert r.at == "2020-01-01T00:00:00.000Z"


async def test_reschedule_updates_in_place_and_keeps_history(make_service, clock):
    service = make_service(deliver=FlakyDeliver(failures=1))
    await service.schedule_reminder("2020-01-01T00:00:00Z", {"v": 1}, reminder_id="r")
    await service.run_due_reminders()
    [before] = await service.list_reminders()
    assert before.attempts == 1

    clock.advance(days=1)
    rid = await service.schedule_reminder("2020-02-01T00:00:00Z", {"v": 2}, reminder_id="r")
    assert rid == "r"

    [after] = await service.list_reminders()
    assert after.at == "2020-02-01T00:00:00.000Z"
    assert after.payload == {"v": 2}
    assert after.attempts == before.attempts
    assert after.created_at == before.created_at
    assert after.last_attempt_at == before.last_attempt_at
    assert after.status is ReminderStatus.PENDING


async def test_reschedule_without_payload_keeps_payload(make_service):
    service = make_service()
    await service.schedule_reminder("2020-01-01T00:00:00Z", {"v": 1}, reminder_id="r")
    await service.schedule_reminder("2020-01-05T00:00:00Z", reminder_id="r")
    [r] = await service.list_reminders()
    assert r.payload == {"v": 1}


async def test_schedule_emits_event(make_service, bus):
    scheduled = []
    bus.on(E.REMINDER_SCHEDULED)(scheduled.append)
    service = make_service()
    rid = await service.schedule_reminder("2020-01-01T00:00:00Z", None)
    assert [r.id for r in scheduled] == [rid]


async def test_schedule_then_run_sends_with_default_delivery(make_service, bus, notifier):
    received = []
    bus.on(E.NOTIFICATION)(received.append)
    service = make_service()
    service.configure_templates({"booking": {"title": "Booking for {{user.name}}", "body": "{{when}}"}})

    rid = await service.schedule_reminder("2020-01-01T00:00", {
        "target": "booking", "user": {"name": "Ann"}, "when": "tomorrow",
    })
    await service.run_due_reminders(datetime(2020, 1, 2, tzinfo=timezone.utc))

    [r] = await service.list_reminders()
    assert (r.id, r.status) == (rid, ReminderStatus.SENT)
    assert r.sent_at is not None
    assert notifier.shown[0]["title"] == "Booking for Ann"
    assert received[0].target == "booking"
    assert received[0].body == "tomorrow"


async def test_configure_templates_during_run(make_service, bus):
    received = []
    bus.on(E.NOTIFICATION)(received.append)
    service = make_service()

    async def deliver(target, payload):
        service.configure_templates({"late": "late {{n}}"})
        await service.send_notification("late", payload)

    service.scheduler.deliver = deliver
    await service.schedule_reminder("2020-01-01T00:00:00Z", {"n": 1})
    await service.run_due_reminders()
    assert received[0].body == "late 1"


async def test_run_accepts_string_now(make_service):
    service = make_service()
    await service.schedule_reminder("2020-01-01T00:00:00Z", None, reminder_id="r")
    await service.run_due_reminders("2019-12-31T00:00:00Z")
    assert (await service.list_reminders())[0].status is ReminderStatus.PENDING
    await service.run_due_reminders("2020-01-01T00:00:00Z")
    assert (await service.list_reminders())[0].status is ReminderStatus.SENT


async def test_send_notification_never_raises(make_service, notifier):
    notifier.fail = True
    service = make_service()
    service.configure_templates({"boom": lambda p: 1 / 0})
    await service.send_notification("boom", {"templateKey": "boom"})


def test_require_service(make_service, monkeypatch):
    monkeypatch.setattr(service_module, "_service", None)
    with pytest.raises(RuntimeError):
        require_service()
    service = make_service()
    configure_service(service)
    assert require_service() is service
