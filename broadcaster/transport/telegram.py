"""Telegram Bot API implementation of Transport."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from broadcaster.errors import RateLimitError, TransportError
from broadcaster.models import Target
from broadcaster.transport.base import Transport

_LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.telegram.org"


class TelegramBotTransport(Transport):
    """Sends messages through the Telegram Bot API.

    Chats are addressed by numeric id, groups and channels by ``@handle``.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/bot{token}",
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def send(self, target: Target, text: str) -> str:
        result = await self._call("sendMessage", {"chat_id": target.peer, "text": text})
        try:
            return str(result["message_id"])
        except (KeyError, TypeError) as exc:
            raise TransportError(f"sendMessage returned no message_id: {result!r}") from exc

    async def get_me(self) -> dict[str, Any]:
        """Return the bot's own user profile."""

        result = await self._call("getMe", {})
        if not isinstance(result, dict):
            raise TransportError(f"getMe returned unexpected result: {result!r}")
        return result

    async def is_authorized(self) -> bool:
        try:
            await self.get_me()
        except TransportError as exc:
            _LOGGER.error("Telegram authorization check failed: %s", exc)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(f"/{method}", json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(f"Telegram {method} network error: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Telegram {method} returned non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(data, dict):
            raise TransportError(f"Telegram {method} returned unexpected body: {data!r}")

        if data.get("ok"):
            return data.get("result")

        description = str(data.get("description") or f"HTTP {response.status_code}")
        error_code = data.get("error_code", response.status_code)
        if response.status_code == 429 or error_code == 429:
            parameters = data.get("parameters")
            retry_after = parameters.get("retry_after") if isinstance(parameters, dict) else None
            raise RateLimitError(
                f"Telegram {method} rate limited: {description}",
                retry_after=int(retry_after) if isinstance(retry_after, (int, float)) else None,
            )
        raise TransportError(f"Telegram {method} failed ({error_code}): {description}")
