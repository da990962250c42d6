"""Notification channel configuration and event payload schemas.

``notification_settings.config`` is stored as an untyped JSON object. It is
decoded into one of the channel variants below exactly once, at the boundary
(``decode_channel_config``), keyed by the row's ``notification_type``.
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError

from feedback_portal.schemas.common import NotificationType


class InvalidChannelConfig(ValueError):
    """Channel config does not match the variant for its notification type."""


class TelegramConfig(BaseModel):
    type: Literal["telegram"] = "telegram"
    bot_token: str = Field(..., min_length=1)
    chat_id: str = Field(..., min_length=1)


class SlackConfig(BaseModel):
    type: Literal["slack"] = "slack"
    webhook_url: HttpUrl


class WebhookConfig(BaseModel):
    type: Literal["webhook"] = "webhook"
    url: HttpUrl


class EmailConfig(BaseModel):
    type: Literal["email"] = "email"
    recipients: list[str] = Field(default_factory=list)


ChannelConfig = Annotated[
    Union[TelegramConfig, SlackConfig, WebhookConfig, EmailConfig],
    Field(discriminator="type"),
]

_channel_adapter: TypeAdapter[ChannelConfig] = TypeAdapter(ChannelConfig)

# Fields holding credentials or private endpoints, encrypted at rest
SECRET_FIELDS: dict[str, tuple[str, ...]] = {
    NotificationType.TELEGRAM.value: ("bot_token",),
    NotificationType.SLACK.value: ("webhook_url",),
    NotificationType.WEBHOOK.value: ("url",),
    NotificationType.EMAIL.value: (),
}


def decode_channel_config(notification_type: str, raw: dict | None) -> ChannelConfig:
    """Decode a raw (already decrypted) config dict into its channel variant.

    Raises ``InvalidChannelConfig`` when required fields are missing or
    malformed.
    """
    if notification_type not in SECRET_FIELDS:
        raise InvalidChannelConfig(f"Unknown notification type: {notification_type}")
    payload = {**(raw or {}), "type": notification_type}
    try:
        return _channel_adapter.validate_python(payload)
    except ValidationError as exc:
        fields = ", ".join(str(e["loc"][-1]) for e in exc.errors())
        raise InvalidChannelConfig(f"Invalid {notification_type} config: {fields}") from exc


class NotificationData(BaseModel):
    """Event payload handed to every channel formatter."""

    feedback_id: str | None = None
    subject: str | None = None
    category: str | None = None
    urgency: str | None = None
    feedback_type: str | None = None
