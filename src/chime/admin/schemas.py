from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field


@dataclass
class RuntimeControl:
    shutdown_event: asyncio.Event
    started_at: float


class ShutdownRequest(BaseModel):
    reason: str = Field(default="manual")


class ScheduleRequest(BaseModel):
    id: Optional[str] = None
    at: Optional[str] = None
    payload: Any = None


class RunRequest(BaseModel):
    now: Optional[str] = None


class NotificationRequest(BaseModel):
    target: Any = None
    payload: Any = None


class TemplateRequest(BaseModel):
    template: Optional[str] = None
    context: Any = None
