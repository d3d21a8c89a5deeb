from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "MAX_ATTEMPTS",
    "ReminderStatus", "TERMINAL_STATUSES", "Reminder",
    "Notification", "DeliveryOutcome",
    "InvalidInputError",
]

# 达到上限后提醒被强制置为 failed
MAX_ATTEMPTS = 5


# ----------------- Reminder 数据模型 ----------------
class ReminderStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({ReminderStatus.SENT, ReminderStatus.FAILED})


@dataclass
class Reminder:
    id: str
    at: str  # UTC ISO-8601, 例如 "2020-01-01T00:00:00.000Z"
    payload: Any = None
    attempts: int = 0
    status: ReminderStatus = ReminderStatus.PENDING
    created_at: str = ""
    last_attempt_at: Optional[str] = None
    sent_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """持久化格式，字段名与存储中的 JSON 一致；可选字段为空时省略"""
        data: Dict[str, Any] = {
            "id": self.id,
            "at": self.at,
            "payload": self.payload,
            "attempts": self.attempts,
            "status": self.status.value,
            "createdAt": self.created_at,
        }
        if self.last_attempt_at is not None:
            data["lastAttemptAt"] = self.last_attempt_at
        if self.sent_at is not None:
            data["sentAt"] = self.sent_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Reminder:
        """从存储记录还原，缺失 id 或 status 非法时抛出 ValueError"""
        reminder_id = data.get("id")
        if reminder_id is None or reminder_id == "":
            raise ValueError("记录缺少 id")
        attempts = data.get("attempts") or 0
        if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 0:
            raise ValueError(f"attempts 非法: {attempts!r}")
        return cls(
            id=str(reminder_id),
            at=data.get("at") if isinstance(data.get("at"), str) else "",
            payload=data.get("payload"),
            attempts=attempts,
            status=ReminderStatus(data.get("status", ReminderStatus.PENDING.value)),
            created_at=data.get("createdAt") or "",
            last_attempt_at=data.get("lastAttemptAt"),
            sent_at=data.get("sentAt"),
        )


# ----------------- 通知数据模型 ----------------
@dataclass
class Notification:
    """应用内事件携带的内容"""
    title: str
    body: Optional[str]
    data: Any
    target: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "body": self.body, "data": self.data, "target": self.target}


@dataclass
class DeliveryOutcome:
    ok: bool
    error: Optional[BaseException] = field(default=None, repr=False)

    @classmethod
    def success(cls) -> DeliveryOutcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException) -> DeliveryOutcome:
        return cls(ok=False, error=error)


# ----------------- 错误 ----------------
class InvalidInputError(ValueError):
    """schedule_reminder 的 at 缺失或无法解析"""
