"""通过 notify-send 发送桌面通知 (Linux / freedesktop)"""

from __future__ import annotations

import asyncio
import shutil
from typing import Any, Optional

from chime.channels.base import NotificationPermission, SystemNotifier
from chime.logger import logger

__all__ = ["DesktopNotifier"]


class DesktopNotifier(SystemNotifier):
    def __init__(self, app_name: str = "Chime", enabled: bool = True, executable: str = "notify-send") -> None:
        self.app_name = app_name
        self.executable = executable
        self._path: str | None = None
        self._permission = NotificationPermission.DEFAULT if enabled else NotificationPermission.DENIED

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    async def request_permission(self) -> NotificationPermission:
        if self._permission is not NotificationPermission.DEFAULT:
            return self._permission
        self._path = shutil.which(self.executable)
        if self._path is None:
            logger.info(f"未找到 {self.executable}, 桌面通知不可用")
            self._permission = NotificationPermission.DENIED
        else:
            self._permission = NotificationPermission.GRANTED
        return self._permission

    async def show(
        self,
        title: str,
        body: Optional[str],
        data: Any = None,
        icon: Optional[str] = None,
        badge: Optional[str] = None,
    ) -> None:
        args = ["-a", self.app_name]
        if icon:
            args += ["-i", icon]
        # 标题和正文可能以 - 开头
        args += ["--", title]
        if body:
            args.append(body)

        proc = await asyncio.create_subprocess_exec(
            self._path or self.executable,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise RuntimeError(f"{self.executable} 退出码 {proc.returncode}: {stderr.decode(errors='replace').strip()}")
        logger.trace(f"桌面通知已发送: {title}")
