"""Webhook notification adapter.

POSTs ``{"event": ..., "payload": {...}}`` as JSON to a configured URL.
Delivery beyond that (push, email) belongs to whatever listens there.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from exambank.interfaces.notification_provider import INotificationProvider
from exambank.utils.errors import ExamBankError

logger = structlog.get_logger(logger_name=__name__)


class WebhookNotificationProvider(INotificationProvider):
    """Emits pipeline events to a JSON webhook."""

    def __init__(self, http_client: httpx.AsyncClient, webhook_url: str) -> None:
        self._http = http_client
        self._url = webhook_url

    async def notify(self, event: str, payload: dict[str, Any]) -> None:
        try:
            response = await self._http.post(self._url, json={"event": event, "payload": payload})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExamBankError(
                message=f"Webhook delivery failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("notification_sent", notification_event=event)

    def get_provider_name(self) -> str:
        return "webhook"

    def is_available(self) -> bool:
        return bool(self._url)
