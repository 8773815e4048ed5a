"""Messaging transport interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from broadcaster.models import Target


class Transport(ABC):
    """Authenticated handle the dispatch engine sends through."""

    @abstractmethod
    async def send(self, target: Target, text: str) -> str:
        """Send text to a target and return the transport's message id.

        Raises:
            RateLimitError: the transport asked for a cooldown.
            TransportError: any other send failure.
        """

    async def is_authorized(self) -> bool:
        return True

    async def aclose(self) -> None:
        """Release connections held by the transport."""
