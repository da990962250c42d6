"""In-memory registry of integration webhook endpoints.

Registrations live in process memory only: they are lost on restart and are
not shared between workers. Integrations re-register on startup.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from feedback_portal.services.http_client_manager import PURPOSE_NOTIFICATIONS, get_http_client

logger = logging.getLogger(__name__)


class WebhookRegistry:
    def __init__(self) -> None:
        self._urls: list[str] = []

    def register(self, url: str) -> list[str]:
        """Add ``url`` unless already present; returns the current list."""
        if url not in self._urls:
            self._urls.append(url)
            logger.info("Registered webhook endpoint (%d total)", len(self._urls))
        return self.list()

    def list(self) -> list[str]:
        return list(self._urls)

    def clear(self) -> None:
        self._urls.clear()

    async def _post(self, url: str, event: dict[str, Any]) -> bool:
        client = get_http_client(PURPOSE_NOTIFICATIONS)
        try:
            resp = await client.post(url, json=event, headers={"X-Webhook-Event": event["type"]})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery to %s failed: %s", url, type(exc).__name__)
            return False
        return True

    async def trigger(self, event_type: str, data: dict[str, Any]) -> int:
        """POST the event to every endpoint and wait for all of them.

        Returns the number of endpoints that accepted the event.
        """
        urls = self.list()
        if not urls:
            return 0
        event = {
            "type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        results = await asyncio.gather(*(self._post(url, event) for url in urls), return_exceptions=True)
        return sum(1 for r in results if r is True)


webhook_registry = WebhookRegistry()


def get_webhook_registry() -> WebhookRegistry:
    """FastAPI dependency returning the process-wide registry."""
    return webhook_registry
