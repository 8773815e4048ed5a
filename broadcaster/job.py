"""The scheduled broadcast task."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from broadcaster.db import Database
from broadcaster.dispatch import DispatchEngine
from broadcaster.models import DispatchOutcome, Target

LOGGER = logging.getLogger(__name__)


class BroadcastJob:
    """Zero-argument task that sends the configured message to every target.

    With ``serialize_runs`` a fire that arrives while a previous run is still
    sending is skipped instead of overlapping it.
    """

    def __init__(
        self,
        engine: DispatchEngine,
        targets: Sequence[Target],
        message: str,
        inter_send_delay_ms: int,
        db: Database | None = None,
        serialize_runs: bool = True,
    ) -> None:
        self._engine = engine
        self._targets = list(targets)
        self._message = message
        self._inter_send_delay_ms = inter_send_delay_ms
        self._db = db
        self._serialize_runs = serialize_runs
        self._active_runs = 0

    @property
    def running(self) -> bool:
        return self._active_runs > 0

    async def __call__(self) -> list[DispatchOutcome] | None:
        if self._serialize_runs and self.running:
            LOGGER.warning("Previous broadcast still running, skipping this fire")
            return None

        self._active_runs += 1
        started_at = datetime.now(timezone.utc)
        try:
            outcomes = await self._engine.dispatch_all(
                self._targets, self._message, self._inter_send_delay_ms
            )
        finally:
            self._active_runs -= 1

        if self._db is not None:
            run_id = self._db.record_run(started_at, outcomes)
            LOGGER.debug("Recorded dispatch run %d", run_id)
        return outcomes
