"""Core domain models used across layers."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from broadcaster.errors import InvalidArgument, InvalidSchedule

_TIME_OF_DAY = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")

INTERVAL_BOUNDS: dict[str, tuple[int, int]] = {
    "minutes": (1, 59),
    "hours": (1, 23),
    "days": (1, 30),
}


class TargetKind(str, Enum):
    CHAT = "chat"
    GROUP = "group"
    CHANNEL = "channel"


class ErrorKind(str, Enum):
    RATE_LIMITED = "RateLimited"
    TRANSPORT_FAILURE = "TransportFailure"


@dataclass(frozen=True, slots=True)
class Target:
    """A single recipient: a numeric chat id or a group/channel handle."""

    kind: TargetKind
    id: int | None = None
    handle: str | None = None

    def __post_init__(self) -> None:
        try:
            kind = TargetKind(self.kind)
        except ValueError as exc:
            raise InvalidArgument(f"Unknown target kind: {self.kind!r}") from exc
        object.__setattr__(self, "kind", kind)

        if kind is TargetKind.CHAT:
            if isinstance(self.id, bool) or not isinstance(self.id, int) or self.handle is not None:
                raise InvalidArgument("Chat targets need an integer id and no handle")
        else:
            if not isinstance(self.handle, str) or not self.handle.lstrip("@") or self.id is not None:
                raise InvalidArgument(f"{kind.value.title()} targets need a handle and no id")
            object.__setattr__(self, "handle", self.handle.lstrip("@"))

    @classmethod
    def chat(cls, chat_id: int) -> Target:
        return cls(TargetKind.CHAT, id=chat_id)

    @classmethod
    def group(cls, handle: str) -> Target:
        return cls(TargetKind.GROUP, handle=handle)

    @classmethod
    def channel(cls, handle: str) -> Target:
        return cls(TargetKind.CHANNEL, handle=handle)

    @property
    def peer(self) -> int | str:
        """Identifier the transport addresses."""

        if self.kind is TargetKind.CHAT:
            return self.id  # type: ignore[return-value]
        return f"@{self.handle}"

    @property
    def label(self) -> str:
        return f"{self.kind.value} {self.peer}"


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Result of one send attempt within a dispatch run."""

    target: Target
    success: bool
    message_id: str | None = None
    error_kind: ErrorKind | None = None
    wait_seconds: int | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class DispatchSummary:
    total: int
    succeeded: int
    rate_limited: int
    failed: int


def interval_to_cron(value: int, unit: str) -> str:
    """Convert an interval to a five-field cron expression.

    Each unit maps onto a single ``*/v`` field, so values outside that field's
    range cannot be expressed and are rejected.
    """
    bounds = INTERVAL_BOUNDS.get(unit) if isinstance(unit, str) else None
    if bounds is None:
        raise InvalidSchedule(f"Unsupported interval unit: {unit!r}")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSchedule(f"Interval value must be an integer, got {value!r}")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidSchedule(f"Invalid {unit} interval {value}. Must be between {low} and {high}.")

    if unit == "minutes":
        return f"*/{value} * * * *"
    if unit == "hours":
        return f"0 */{value} * * *"
    return f"0 0 */{value} * *"


def daily_time_to_cron(time_of_day: str) -> str:
    """Convert a zero-padded 24-hour ``HH:MM`` time to a daily cron expression."""

    match = _TIME_OF_DAY.match(time_of_day) if isinstance(time_of_day, str) else None
    if match is None:
        raise InvalidSchedule(
            f"Invalid time {time_of_day!r}. Must be in 24-hour format (HH:MM)."
        )
    hours, minutes = (int(part) for part in match.groups())
    return f"{minutes} {hours} * * *"


@dataclass(frozen=True, slots=True)
class IntervalSchedule:
    value: int
    unit: str

    def __post_init__(self) -> None:
        interval_to_cron(self.value, self.unit)

    def to_cron(self) -> list[str]:
        return [interval_to_cron(self.value, self.unit)]


@dataclass(frozen=True, slots=True)
class DailyTimesSchedule:
    times: tuple[str, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.times, Sequence) or isinstance(self.times, (str, bytes)):
            raise InvalidSchedule("Times must be a sequence of HH:MM strings")
        object.__setattr__(self, "times", tuple(self.times))
        if not self.times:
            raise InvalidSchedule("Times must be a non-empty list of HH:MM strings")
        for time_of_day in self.times:
            daily_time_to_cron(time_of_day)

    def to_cron(self) -> list[str]:
        return [daily_time_to_cron(time_of_day) for time_of_day in self.times]


@dataclass(frozen=True, slots=True)
class CronSchedule:
    expr: str

    def __post_init__(self) -> None:
        # Five fields, or six with a leading seconds field.
        if not isinstance(self.expr, str) or len(self.expr.split()) not in (5, 6):
            raise InvalidSchedule(f"Invalid cron expression: {self.expr!r}")

    def to_cron(self) -> list[str]:
        return [" ".join(self.expr.split())]


ScheduleSpec = IntervalSchedule | DailyTimesSchedule | CronSchedule
