"""Shared HTTP client pool for outbound calls.

One pooled ``httpx.AsyncClient`` per purpose:

  - ``"ai"``: LLM provider calls, short timeout so submissions never hang
  - ``"notifications"``: Telegram, Slack and generic webhooks

Clients are recreated when the running event loop changes (the test client
spins a fresh loop per request) and closed on shutdown via
``close_all_clients()``.
"""
from __future__ import annotations

import asyncio
import logging

import httpx

from feedback_portal.config import get_settings

logger = logging.getLogger(__name__)

PURPOSE_AI = "ai"
PURPOSE_NOTIFICATIONS = "notifications"

_CONNECTION_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=120,
)

_clients: dict[str, httpx.AsyncClient] = {}
_client_loop_ids: dict[str, int] = {}


def _timeout_for(purpose: str) -> httpx.Timeout:
    settings = get_settings()
    if purpose == PURPOSE_AI:
        return httpx.Timeout(settings.AI_TIMEOUT_SECONDS, connect=5.0)
    return httpx.Timeout(settings.NOTIFICATION_TIMEOUT_SECONDS, connect=5.0)


def get_http_client(purpose: str) -> httpx.AsyncClient:
    """Get or create the pooled client for *purpose*."""
    loop_id = id(asyncio.get_running_loop())

    if (
        purpose not in _clients
        or _clients[purpose].is_closed
        or _client_loop_ids.get(purpose) != loop_id
    ):
        _clients[purpose] = httpx.AsyncClient(
            timeout=_timeout_for(purpose),
            limits=_CONNECTION_LIMITS,
        )
        _client_loop_ids[purpose] = loop_id
        logger.debug("Created new HTTP client for '%s'", purpose)

    return _clients[purpose]


async def close_all_clients() -> None:
    """Close every pooled HTTP client (for graceful shutdown)."""
    for name, client in list(_clients.items()):
        if not client.is_closed:
            try:
                await client.aclose()
            except (httpx.HTTPError, RuntimeError) as exc:
                logger.warning("Error closing HTTP client '%s': %s", name, exc)
    _clients.clear()
    _client_loop_ids.clear()
    logger.info("All HTTP clients closed")
