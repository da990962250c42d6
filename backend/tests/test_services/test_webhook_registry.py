"""Tests for the in-memory webhook registry."""
import json
from unittest.mock import patch

import httpx
import pytest

from feedback_portal.services.webhook_registry import WebhookRegistry


class TestRegistration:
    def test_register_is_idempotent(self):
        registry = WebhookRegistry()
        registry.register("https://a.example.com/hook")
        urls = registry.register("https://a.example.com/hook")
        assert urls == ["https://a.example.com/hook"]

    def test_list_returns_copy(self):
        registry = WebhookRegistry()
        registry.register("https://a.example.com/hook")
        registry.list().clear()
        assert registry.list() == ["https://a.example.com/hook"]

    def test_clear(self):
        registry = WebhookRegistry()
        registry.register("https://a.example.com/hook")
        registry.clear()
        assert registry.list() == []


class TestTrigger:
    @pytest.mark.asyncio
    async def test_no_endpoints(self):
        assert await WebhookRegistry().trigger("feedback.submitted", {"id": "abc"}) == 0

    @pytest.mark.asyncio
    async def test_posts_event_to_every_endpoint(self):
        received = []

        def handler(request):
            received.append(request)
            if request.url.host == "down.example.com":
                return httpx.Response(503)
            return httpx.Response(204)

        registry = WebhookRegistry()
        registry.register("https://a.example.com/hook")
        registry.register("https://b.example.com/hook")
        registry.register("https://down.example.com/hook")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with patch("feedback_portal.services.webhook_registry.get_http_client", return_value=client):
            accepted = await registry.trigger("feedback.submitted", {"id": "abc", "urgency": "high"})

        assert accepted == 2
        assert len(received) == 3
        body = json.loads(received[0].content)
        assert body["type"] == "feedback.submitted"
        assert body["data"] == {"id": "abc", "urgency": "high"}
        assert "timestamp" in body
        assert received[0].headers["X-Webhook-Event"] == "feedback.submitted"
