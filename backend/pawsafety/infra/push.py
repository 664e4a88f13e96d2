"""Expo push delivery for notification records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx

from pawsafety.settings import settings

logger = logging.getLogger(__name__)


class PushDeliveryError(RuntimeError):
    """Raised when the push provider rejects or never receives a message."""


class PushDispatcher(Protocol):
    """Interface for push delivery to a single device token."""

    async def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> None:
        ...


@dataclass
class ExpoPushDispatcher(PushDispatcher):
    """POST one message per call to the Expo push API."""

    http: httpx.AsyncClient
    api_url: str = settings.push_api_url
    request_timeout: float = settings.push_timeout_seconds

    async def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> None:
        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": dict(data),
            "priority": "high",
            "channelId": "default",
        }
        try:
            response = await self.http.post(
                self.api_url,
                json=message,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.request_timeout,
            )
        except httpx.HTTPError as exc:
            raise PushDeliveryError(f"transport: {exc}") from exc
        if response.status_code >= 400:
            raise PushDeliveryError(f"status {response.status_code}")
        # Expo reports per-ticket errors with a 200 response.
        ticket = response.json().get("data") if response.content else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise PushDeliveryError(str(ticket.get("message") or "ticket_error"))


class NullPushDispatcher(PushDispatcher):
    """Dispatcher used when push is disabled; records nothing."""

    async def send(self, token: str, title: str, body: str, data: Mapping[str, Any]) -> None:
        logger.debug("push disabled, dropping message", extra={"title": title})
