"""Exception hierarchy shared across layers."""

from __future__ import annotations


class BroadcasterError(Exception):
    """Base class for broadcaster errors."""


class InvalidSchedule(BroadcasterError, ValueError):
    """Schedule input is malformed or out of range."""


class InvalidArgument(BroadcasterError, ValueError):
    """A call into the dispatch engine was structurally invalid."""


class ConfigError(BroadcasterError):
    """Broadcast configuration file could not be loaded."""


class TransportError(BroadcasterError):
    """A send through the transport failed."""


class RateLimitError(TransportError):
    """The transport asked us to slow down.

    ``retry_after`` carries the wait in seconds when the transport reported one.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
