from __future__ import annotations

import time
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from chime.datamodel import InvalidInputError
from chime.logger import logger
from chime.scheduler import get_status as get_scheduler_status
from chime.service import NotificationService, require_service
from chime.templates import render_preview, validate_template

from .auth import require_admin_auth
from .schemas import (
    NotificationRequest,
    RunRequest,
    RuntimeControl,
    ScheduleRequest,
    ShutdownRequest,
    TemplateRequest,
)


def create_app(control: RuntimeControl, service: NotificationService | None = None) -> FastAPI:
    app = FastAPI(title="Chime Admin API", version="0.1.0")

    def get_service() -> NotificationService:
        return service if service is not None else require_service()

    def health_payload() -> dict[str, Any]:
        return {
            "status": "ok",
            "now_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime_seconds": max(0.0, time.time() - control.started_at),
            "shutdown_requested": control.shutdown_event.is_set(),
        }

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, Any]:
        return health_payload()

    @app.get("/api/v1/metrics")
    async def get_metrics(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        svc = get_service()
        return {
            "scheduler": get_scheduler_status(),
            "runtime": svc.metrics.snapshot(),
            "templates": svc.registry.keys(),
        }

    @app.get("/api/v1/reminders")
    async def list_reminders(request: Request, status: str | None = None) -> dict[str, Any]:
        await require_admin_auth(request)
        reminders = await get_service().list_reminders()
        items = [r.to_dict() for r in reminders if status is None or r.status.value == status]
        return {"items": items, "count": len(items)}

    @app.post("/api/v1/reminders")
    async def schedule_reminder(request: Request, body: ScheduleRequest) -> dict[str, Any]:
        await require_admin_auth(request)
        try:
            reminder_id = await get_service().schedule_reminder(body.at, body.payload, reminder_id=body.id)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"ok": True, "id": reminder_id}

    @app.post("/api/v1/reminders/run")
    async def run_reminders(request: Request, body: RunRequest | None = None) -> dict[str, Any]:
        await require_admin_auth(request)
        svc = get_service()
        await svc.run_due_reminders(body.now if body is not None else None)
        reminders = await svc.list_reminders()
        counts: dict[str, int] = {}
        for r in reminders:
            counts[r.status.value] = counts.get(r.status.value, 0) + 1
        return {"ok": True, "counts": counts}

    @app.post("/api/v1/notifications")
    async def send_notification(request: Request, body: NotificationRequest) -> dict[str, bool]:
        await require_admin_auth(request)
        await get_service().send_notification(body.target, body.payload)
        return {"ok": True}

    @app.post("/api/v1/templates/validate")
    async def validate(request: Request, body: TemplateRequest) -> dict[str, Any]:
        await require_admin_auth(request)
        error = validate_template(body.template)
        return {"valid": error is None, "error": error}

    @app.post("/api/v1/templates/preview")
    async def preview(request: Request, body: TemplateRequest) -> dict[str, Any]:
        await require_admin_auth(request)
        return {"text": render_preview(body.template or "", body.context or {})}

    @app.post("/api/v1/control/shutdown")
    async def shutdown(request: Request, body: ShutdownRequest) -> dict[str, Any]:
        await require_admin_auth(request)
        logger.warning(f"收到管理端关闭请求: reason={body.reason}")
        control.shutdown_event.set()
        return {"ok": True}

    return app
