import asyncio
import logging
import signal
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from broadcaster import main as entrypoint
from broadcaster.config import BroadcastConfig


def _config(tmp_path: Path, **advanced) -> BroadcastConfig:
    return BroadcastConfig.model_validate(
        {
            "messaging": {"message": "hi", "targets": [{"type": "chat", "id": 1}]},
            "scheduling": {"type": "interval", "value": 5, "unit": "minutes"},
            "advanced": {"log_dir": str(tmp_path / "logs"), **advanced},
        }
    )


def test_configure_logging_writes_combined_and_error_files(tmp_path):
    log_dir = tmp_path / "logs"
    entrypoint.configure_logging("info", log_dir)

    logger = logging.getLogger("broadcaster.test")
    logger.info("routine")
    logger.error("broken")
    for handler in logging.getLogger().handlers:
        handler.flush()

    combined = (log_dir / "broadcaster.log").read_text(encoding="utf-8")
    errors = (log_dir / "error.log").read_text(encoding="utf-8")
    assert "INFO broadcaster.test: routine" in combined
    assert "broken" in combined
    assert "broken" in errors
    assert "routine" not in errors

    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


@pytest.mark.asyncio
async def test_run_exits_when_transport_is_unauthorized(tmp_path):
    settings = MagicMock(
        telegram_bot_token="bad",
        telegram_api_base_url="https://api.telegram.test",
        request_timeout_seconds=5.0,
        log_level="info",
        database_path=tmp_path / "broadcaster.db",
    )
    transport = MagicMock()
    transport.is_authorized = AsyncMock(return_value=False)
    transport.aclose = AsyncMock()

    with (
        patch.object(entrypoint, "load_settings", return_value=settings),
        patch.object(entrypoint, "load_broadcast_config", return_value=_config(tmp_path)),
        patch.object(entrypoint, "TelegramBotTransport", return_value=transport),
    ):
        code = await entrypoint.run()

    assert code == 1
    transport.aclose.assert_awaited_once()
    assert not (tmp_path / "broadcaster.db").exists()

    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


@pytest.mark.asyncio
async def test_interrupt_during_initial_run_shuts_down_cleanly(tmp_path):
    settings = MagicMock(
        telegram_bot_token="ok",
        telegram_api_base_url="https://api.telegram.test",
        request_timeout_seconds=5.0,
        log_level="info",
        database_path=tmp_path / "broadcaster.db",
    )
    transport = MagicMock()
    transport.is_authorized = AsyncMock(return_value=True)
    transport.get_me = AsyncMock(return_value={"first_name": "Relay", "username": "relay_bot"})
    transport.aclose = AsyncMock()
    runs = []

    class InterruptedJob:
        def __init__(self, **kwargs) -> None:  # noqa: ANN003
            pass

        async def __call__(self) -> None:
            runs.append(True)
            signal.raise_signal(signal.SIGINT)
            await asyncio.sleep(0)

    with (
        patch.object(entrypoint, "load_settings", return_value=settings),
        patch.object(entrypoint, "load_broadcast_config", return_value=_config(tmp_path, run_on_start=True)),
        patch.object(entrypoint, "TelegramBotTransport", return_value=transport),
        patch.object(entrypoint, "BroadcastJob", InterruptedJob),
    ):
        code = await asyncio.wait_for(entrypoint.run(), timeout=5)

    assert code == 0
    assert runs == [True]
    transport.aclose.assert_awaited_once()

    logging.basicConfig(handlers=[logging.NullHandler()], force=True)
