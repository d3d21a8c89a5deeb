import asyncio
import signal

from chime.config.settings import *
from chime.logger import setup_logging, logger

from chime.admin.http_server import main_loop as admin_http_main
from chime.channels.desktop import DesktopNotifier
from chime.scheduler import main_loop as reminder_main
from chime.service import NotificationService, configure_service
from chime.storage import db_config
from chime.storage.kv import SqliteBackend

shutdown_event = asyncio.Event()


def signal_handler(sig, frame):
    """处理 SIGINT (Ctrl+C) / SIGTERM 信号"""
    logger.info("收到中断信号,正在依次关闭组件...")
    shutdown_event.set()


async def main():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    conn = await db_config.init_db(DB_PATH)
    service = NotificationService(
        SqliteBackend(conn),
        store_key=REMINDER_STORE_KEY,
        notifier=DesktopNotifier(app_name=APP_NAME, enabled=ENABLE_DESKTOP_NOTIFY),
        default_tz=DEFAULT_TIMEZONE,
    )
    configure_service(service)

    try:
        tasks = [reminder_main(service, shutdown_event, SCAN_INTERVAL_SECONDS)]
        if ENABLE_ADMIN_HTTP:
            tasks.append(admin_http_main(shutdown_event, service))
        else:
            logger.info("Admin HTTP 已禁用")

        await asyncio.gather(*tasks)
    finally:
        logger.info("关闭数据库连接...")
        await db_config.close_db()
        logger.info("Chime 已关闭")


def run() -> None:
    setup_logging(
        log_level=LOG_LEVEL,
        log_file=LOG_FILE,
        console_level=CONSOLE_LOG_LEVEL,
    )
    logger.info("启动 Chime...")
    asyncio.run(main())


if __name__ == "__main__":
    run()
