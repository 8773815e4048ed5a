"""Sequential, rate-limit-aware fan-out of one message to many targets."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Awaitable, Callable

from broadcaster.errors import InvalidArgument, RateLimitError
from broadcaster.models import DispatchOutcome, DispatchSummary, ErrorKind, Target
from broadcaster.transport.base import Transport

LOGGER = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_WAIT_SECONDS = 60
RATE_LIMIT_BUFFER_SECONDS = 1

_WAIT_PATTERN = re.compile(r"(?:FLOOD_WAIT_|RATE_LIMIT_|retry after )(\d+)", re.IGNORECASE)
_MARKER_PATTERN = re.compile(r"FLOOD_WAIT|RATE_LIMIT|Too Many Requests", re.IGNORECASE)


def classify_rate_limit(exc: BaseException) -> int | None:
    """Return the wait in seconds if ``exc`` is a throttling error, else None.

    A structured ``retry_after`` wins; otherwise the wait is pulled from the
    error text. Throttling without a readable duration waits the default.
    """
    if isinstance(exc, RateLimitError) and exc.retry_after is not None:
        return max(int(exc.retry_after), 0)

    text = str(exc)
    match = _WAIT_PATTERN.search(text)
    if match:
        return int(match.group(1))
    if isinstance(exc, RateLimitError) or _MARKER_PATTERN.search(text):
        return DEFAULT_RATE_LIMIT_WAIT_SECONDS
    return None


def summarize(outcomes: Sequence[DispatchOutcome]) -> DispatchSummary:
    rate_limited = sum(1 for o in outcomes if o.error_kind is ErrorKind.RATE_LIMITED)
    failed = sum(1 for o in outcomes if o.error_kind is ErrorKind.TRANSPORT_FAILURE)
    return DispatchSummary(
        total=len(outcomes),
        succeeded=sum(1 for o in outcomes if o.success),
        rate_limited=rate_limited,
        failed=failed,
    )


class DispatchEngine:
    """Sends one message to each target in order, one at a time.

    Rate-limit pauses hold the whole sequence, so sends are never concurrent.
    Per-target failures land in the returned outcomes instead of raising.
    """

    def __init__(
        self,
        transport: Transport,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._sleep = sleep

    async def dispatch_all(
        self,
        targets: Sequence[Target],
        message: str,
        inter_send_delay_ms: int = 2000,
    ) -> list[DispatchOutcome]:
        _validate_call(targets, inter_send_delay_ms)

        LOGGER.info("Starting to send messages to %d targets", len(targets))
        outcomes: list[DispatchOutcome] = []
        for target in targets:
            outcome = await self._send_one(target, message)
            outcomes.append(outcome)

            if outcome.error_kind is ErrorKind.RATE_LIMITED:
                pause = (outcome.wait_seconds or 0) + RATE_LIMIT_BUFFER_SECONDS
                LOGGER.info("Waiting %d seconds due to rate limiting", pause)
                await self._sleep(pause)
            else:
                await self._sleep(inter_send_delay_ms / 1000)

        succeeded = sum(1 for o in outcomes if o.success)
        LOGGER.info("Completed sending messages. Success: %d/%d", succeeded, len(targets))
        return outcomes

    async def _send_one(self, target: Target, message: str) -> DispatchOutcome:
        try:
            message_id = await self._transport.send(target, message)
        except Exception as exc:  # noqa: BLE001
            timestamp = datetime.now(timezone.utc)
            wait_seconds = classify_rate_limit(exc)
            if wait_seconds is not None:
                LOGGER.warning(
                    "Rate limited at %s! Need to wait %d seconds before sending to %s",
                    timestamp.isoformat(),
                    wait_seconds,
                    target.label,
                )
                return DispatchOutcome(
                    target=target,
                    success=False,
                    error_kind=ErrorKind.RATE_LIMITED,
                    wait_seconds=wait_seconds,
                    error=str(exc),
                    timestamp=timestamp,
                )
            LOGGER.error(
                "Failed to send message to %s at %s: %s", target.label, timestamp.isoformat(), exc
            )
            return DispatchOutcome(
                target=target,
                success=False,
                error_kind=ErrorKind.TRANSPORT_FAILURE,
                error=str(exc),
                timestamp=timestamp,
            )

        outcome = DispatchOutcome(target=target, success=True, message_id=str(message_id))
        LOGGER.info(
            "Message sent successfully to %s at %s (id=%s)",
            target.label,
            outcome.timestamp.isoformat(),
            outcome.message_id,
        )
        return outcome


def _validate_call(targets: object, inter_send_delay_ms: object) -> None:
    if not isinstance(targets, Sequence) or isinstance(targets, (str, bytes)):
        raise InvalidArgument(f"targets must be an ordered sequence, got {type(targets).__name__}")
    for position, target in enumerate(targets):
        if not isinstance(target, Target):
            raise InvalidArgument(f"targets[{position}] is not a Target: {target!r}")
    if isinstance(inter_send_delay_ms, bool) or not isinstance(inter_send_delay_ms, (int, float)):
        raise InvalidArgument("inter_send_delay_ms must be a number")
    if inter_send_delay_ms < 0:
        raise InvalidArgument("inter_send_delay_ms must not be negative")
