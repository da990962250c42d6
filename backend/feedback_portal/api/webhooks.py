"""Webhook endpoint registration for integrations."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from feedback_portal.schemas.configuration import WebhookListResponse, WebhookRegistration
from feedback_portal.services.webhook_registry import WebhookRegistry, get_webhook_registry

router = APIRouter()


@router.post("", response_model=WebhookListResponse)
def register_webhook(
    payload: WebhookRegistration,
    registry: WebhookRegistry = Depends(get_webhook_registry),
):
    webhooks = registry.register(str(payload.url))
    return WebhookListResponse(message="Webhook registered", webhooks=webhooks)


@router.get("", response_model=WebhookListResponse)
def list_webhooks(registry: WebhookRegistry = Depends(get_webhook_registry)):
    return WebhookListResponse(webhooks=registry.list())
