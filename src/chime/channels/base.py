from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

__all__ = ["NotificationPermission", "SystemNotifier"]


class NotificationPermission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class SystemNotifier(ABC):
    """系统通知能力，权限状态由系统维护，这里只观察和请求"""

    @property
    @abstractmethod
    def permission(self) -> NotificationPermission:
        pass

    @abstractmethod
    async def request_permission(self) -> NotificationPermission:
        pass

    @abstractmethod
    async def show(
        self,
        title: str,
        body: Optional[str],
        data: Any = None,
        icon: Optional[str] = None,
        badge: Optional[str] = None,
    ) -> None:
        pass
