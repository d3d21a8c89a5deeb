"""把管理 API 嵌入主进程运行，随 shutdown_event 一起退出"""

from __future__ import annotations

import asyncio
import contextlib
import time

import uvicorn

from chime.config import settings
from chime.logger import logger
from chime.service import NotificationService

from .app import create_app
from .schemas import RuntimeControl


def build_server(control: RuntimeControl, service: NotificationService | None = None) -> uvicorn.Server:
    app = create_app(control, service=service)
    config = uvicorn.Config(
        app,
        host=settings.ADMIN_HTTP_HOST,
        port=settings.ADMIN_HTTP_PORT,
        log_config=None,  # uvicorn 的日志已由 setup_logging 转发到 loguru
        access_log=False,
    )
    server = uvicorn.Server(config)
    # 信号统一由 main.py 处理
    server.install_signal_handlers = lambda: None
    return server


async def main_loop(shutdown_event: asyncio.Event, service: NotificationService | None = None) -> None:
    if not settings.ADMIN_AUTH_TOKEN:
        logger.warning("未配置 ADMIN_AUTH_TOKEN，管理 API 将拒绝所有受保护的请求")

    control = RuntimeControl(shutdown_event=shutdown_event, started_at=time.time())
    server = build_server(control, service)

    async def stop_on_shutdown() -> None:
        await shutdown_event.wait()
        server.should_exit = True

    watcher = asyncio.create_task(stop_on_shutdown())
    logger.info(f"Admin HTTP 监听 http://{settings.ADMIN_HTTP_HOST}:{settings.ADMIN_HTTP_PORT}")
    try:
        await server.serve()
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        logger.info("Admin HTTP 已关闭")
