"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

from broadcaster.config import BroadcastConfig, load_broadcast_config, load_settings
from broadcaster.db import Database
from broadcaster.dispatch import DispatchEngine
from broadcaster.errors import ConfigError, InvalidSchedule
from broadcaster.job import BroadcastJob
from broadcaster.scheduler import TriggerScheduler
from broadcaster.transport.telegram import TelegramBotTransport

LOGGER = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str, log_dir: Path) -> None:
    """Log to the console, a combined log file and an error-only log file."""

    log_dir.mkdir(parents=True, exist_ok=True)
    error_handler = logging.FileHandler(log_dir / "error.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    logging.basicConfig(
        level=level.upper(),
        format=_LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_dir / "broadcaster.log", encoding="utf-8"),
            error_handler,
        ],
        force=True,
    )


def _describe_schedule(config: BroadcastConfig) -> str:
    scheduling = config.scheduling
    if scheduling.type == "interval":
        return f"every {scheduling.value} {scheduling.unit}"
    if scheduling.type == "daily":
        return f"daily at {', '.join(scheduling.times)}"
    return f"cron schedule {scheduling.value}"


async def run() -> int:
    """Initialize app layers and broadcast until interrupted."""

    settings = load_settings()
    config = load_broadcast_config(settings.broadcast_config_path)
    configure_logging(settings.log_level or config.advanced.log_level, config.advanced.log_dir)
    LOGGER.info("Starting broadcaster")

    transport = TelegramBotTransport(
        token=settings.telegram_bot_token,
        base_url=settings.telegram_api_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
    scheduler = TriggerScheduler(timezone=config.advanced.timezone)
    try:
        if not await transport.is_authorized():
            LOGGER.error("Authentication failed. Exiting...")
            return 1
        me = await transport.get_me()
        LOGGER.info("Logged in as: %s (@%s)", me.get("first_name", ""), me.get("username", "no_username"))

        db = Database(settings.database_path)
        db.initialize()

        job = BroadcastJob(
            engine=DispatchEngine(transport),
            targets=config.targets(),
            message=config.messaging.message,
            inter_send_delay_ms=config.advanced.message_delay_ms,
            db=db,
            serialize_runs=config.advanced.serialize_runs,
        )

        scheduler.schedule(config.scheduling.to_schedule_spec(), job)
        scheduler.start()
        LOGGER.info("Messages will be sent %s", _describe_schedule(config))

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, stop_event.set)
        LOGGER.info("Broadcaster is running. Press Ctrl+C to exit.")

        if config.advanced.run_on_start:
            # An interrupt here lets the run finish, then shuts down.
            await job()

        await stop_event.wait()
        LOGGER.info("Shutting down...")
    finally:
        scheduler.shutdown()
        await scheduler.join()
        await transport.aclose()
        LOGGER.info("Broadcaster shutdown complete")
    return 0


def main() -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    try:
        code = asyncio.run(run())
    except (ConfigError, InvalidSchedule) as exc:
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
        LOGGER.error("%s", exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
