"""chime: 提醒调度与通知投递引擎"""

from chime.datamodel import MAX_ATTEMPTS, InvalidInputError, Reminder, ReminderStatus
from chime.service import NotificationService

__version__ = "0.1.0"

__all__ = [
    "MAX_ATTEMPTS",
    "InvalidInputError",
    "NotificationService",
    "Reminder",
    "ReminderStatus",
]
