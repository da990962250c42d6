"""Outbound admin notifications over Telegram, Slack, generic webhooks and email.

``NotificationDispatcher(db).send(event, data)`` reads the enabled channel
rows, decides per channel which events to deliver and sends them all
concurrently. Delivery is fire-and-report: every channel logs and swallows
its own failures so a broken integration never fails a submission.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone

import httpx
from sqlalchemy.orm import Session

from feedback_portal.config import get_settings
from feedback_portal.models import NotificationSetting
from feedback_portal.schemas.common import URGENT_LEVELS, NotificationEvent
from feedback_portal.schemas.configuration import TelegramTestResult
from feedback_portal.schemas.notification import (
    ChannelConfig,
    EmailConfig,
    InvalidChannelConfig,
    NotificationData,
    SlackConfig,
    TelegramConfig,
    WebhookConfig,
)
from feedback_portal.services.config_repository import ConfigRepository
from feedback_portal.services.http_client_manager import PURPOSE_NOTIFICATIONS, get_http_client

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"

URGENCY_EMOJI = {"low": "🟢", "medium": "🟡", "high": "🟠", "critical": "🔴"}
TYPE_EMOJI = {"suggestion": "💡", "concern": "⚠️", "praise": "⭐", "question": "❓"}

SLACK_COLORS = {
    NotificationEvent.NEW_FEEDBACK.value: "#10b981",
    NotificationEvent.URGENT_FEEDBACK.value: "#ef4444",
    NotificationEvent.CLARIFICATION_RESPONSE.value: "#3b82f6",
}
SLACK_DEFAULT_COLOR = "#6b7280"


def _dashboard_url() -> str:
    return f"{get_settings().APP_URL.rstrip('/')}/admin"


def escape_markdown(text: str) -> str:
    """Backslash-escape the characters Telegram's legacy Markdown treats as markup."""
    return re.sub(r"([_*`\[])", r"\\\1", text)


# ── Formatters ─────────────────────────────────────────────────────────

def format_telegram_message(event: str, data: NotificationData) -> str:
    """Markdown text for the Telegram Bot API."""
    category = escape_markdown(data.category or "Uncategorized")
    subject = escape_markdown(data.subject or "No subject")
    link = _dashboard_url()

    if event == NotificationEvent.NEW_FEEDBACK.value:
        return (
            "📬 *New Feedback Received*\n\n"
            f"{TYPE_EMOJI.get(data.feedback_type or 'suggestion', '📝')} *Type:* {data.feedback_type or 'Unknown'}\n"
            f"{URGENCY_EMOJI.get(data.urgency or 'medium', '🟡')} *Urgency:* {data.urgency or 'Medium'}\n"
            f"📁 *Category:* {category}\n\n"
            f"*Subject:* {subject}\n\n"
            f"[View in Dashboard →]({link})"
        )
    if event == NotificationEvent.URGENT_FEEDBACK.value:
        return (
            "🚨 *URGENT Feedback Alert*\n\n"
            f"{URGENCY_EMOJI.get(data.urgency or 'high', '🟠')} *Priority:* {(data.urgency or 'high').upper()}\n"
            f"{TYPE_EMOJI.get(data.feedback_type or 'concern', '⚠️')} *Type:* {data.feedback_type or 'Unknown'}\n"
            f"📁 *Category:* {category}\n\n"
            f"*Subject:* {subject}\n\n"
            "⚡ *Requires immediate attention*\n\n"
            f"[View Now →]({link})"
        )
    if event == NotificationEvent.CLARIFICATION_RESPONSE.value:
        return (
            "💬 *Clarification Response Received*\n\n"
            f"*Subject:* {subject}\n\n"
            "A submitter has responded to a follow-up question.\n\n"
            f"[View Response →]({link})"
        )
    return f"📢 *Feedback System Notification*\n\n{escape_markdown(data.model_dump_json(indent=2))}"


def format_slack_payload(event: str, data: NotificationData) -> dict:
    """Incoming-webhook payload with one colored attachment."""
    return {
        "attachments": [
            {
                "color": SLACK_COLORS.get(event, SLACK_DEFAULT_COLOR),
                "blocks": [
                    {
                        "type": "section",
                        "text": {"type": "mrkdwn", "text": f"*{event.replace('_', ' ').upper()}*"},
                    },
                    {
                        "type": "section",
                        "fields": [
                            {"type": "mrkdwn", "text": f"*Subject:* {data.subject or 'N/A'}"},
                            {"type": "mrkdwn", "text": f"*Category:* {data.category or 'N/A'}"},
                            {"type": "mrkdwn", "text": f"*Urgency:* {data.urgency or 'N/A'}"},
                            {"type": "mrkdwn", "text": f"*Type:* {data.feedback_type or 'N/A'}"},
                        ],
                    },
                ],
            }
        ]
    }


def format_webhook_body(event: str, data: NotificationData) -> dict:
    return {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data.model_dump(mode="json", exclude_none=True),
    }


# ── Channel senders ────────────────────────────────────────────────────

async def send_telegram(config: TelegramConfig, event: str, data: NotificationData) -> bool:
    client = get_http_client(PURPOSE_NOTIFICATIONS)
    try:
        resp = await client.post(
            TELEGRAM_API.format(token=config.bot_token),
            json={
                "chat_id": config.chat_id,
                "text": format_telegram_message(event, data),
                "parse_mode": "Markdown",
            },
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        # The URL embeds the bot token, so only the error type is logged
        logger.error("Telegram notification failed: %s", type(exc).__name__)
        return False
    return True


async def send_slack(config: SlackConfig, event: str, data: NotificationData) -> bool:
    client = get_http_client(PURPOSE_NOTIFICATIONS)
    try:
        resp = await client.post(str(config.webhook_url), json=format_slack_payload(event, data))
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Slack notification failed: %s", type(exc).__name__)
        return False
    return True


async def send_webhook(config: WebhookConfig, event: str, data: NotificationData) -> bool:
    client = get_http_client(PURPOSE_NOTIFICATIONS)
    try:
        resp = await client.post(
            str(config.url),
            json=format_webhook_body(event, data),
            headers={"X-Event-Type": event},
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Webhook notification failed: %s", type(exc).__name__)
        return False
    return True


async def send_email(config: EmailConfig, event: str, data: NotificationData) -> bool:
    # No mail transport configured; record the intent only
    logger.info(
        "Email notification %s for feedback %s to %d recipient(s)",
        event, (data.feedback_id or "")[:8], len(config.recipients),
    )
    return True


_SENDERS = {
    "telegram": send_telegram,
    "slack": send_slack,
    "webhook": send_webhook,
    "email": send_email,
}


# ── Dispatcher ─────────────────────────────────────────────────────────

def events_for_channel(setting: NotificationSetting, event: str, data: NotificationData) -> list[str]:
    """Which events one channel should receive for an incoming ``event``.

    A new high/critical submission also raises ``urgent_feedback`` on
    channels that opted into urgent alerts, independently of the
    new-feedback toggle.
    """
    events: list[str] = []
    if event == NotificationEvent.NEW_FEEDBACK.value:
        if data.urgency in URGENT_LEVELS and setting.notify_on_urgent:
            events.append(NotificationEvent.URGENT_FEEDBACK.value)
        if setting.notify_on_new_feedback:
            events.append(event)
    elif event == NotificationEvent.URGENT_FEEDBACK.value:
        if setting.notify_on_urgent:
            events.append(event)
    elif event == NotificationEvent.CLARIFICATION_RESPONSE.value:
        if setting.notify_on_clarification_response:
            events.append(event)
    return events


class NotificationDispatcher:
    """Fan one event out to every enabled channel."""

    def __init__(self, db: Session):
        self.repo = ConfigRepository(db)

    def _plan(self, event: str, data: NotificationData) -> list[tuple[str, ChannelConfig, str]]:
        plan = []
        for setting in self.repo.list_enabled_channels():
            events = events_for_channel(setting, event, data)
            if not events:
                continue
            try:
                config = self.repo.channel_config(setting)
            except InvalidChannelConfig as exc:
                logger.warning("Skipping %s channel: %s", setting.notification_type, exc)
                continue
            plan.extend((setting.notification_type, config, e) for e in events)
        return plan

    async def send(self, event: str, data: NotificationData) -> int:
        """Deliver ``event``; returns the number of successful deliveries."""
        plan = self._plan(event, data)
        if not plan:
            return 0

        results = await asyncio.gather(
            *(_SENDERS[channel](config, e, data) for channel, config, e in plan),
            return_exceptions=True,
        )
        delivered = 0
        for (channel, _, e), result in zip(plan, results):
            if isinstance(result, BaseException):
                logger.error("%s delivery of %s raised: %s", channel, e, result)
            elif result:
                delivered += 1
        logger.info("Notification %s: %d/%d deliveries succeeded", event, delivered, len(plan))
        return delivered


# ── Telegram connectivity test ─────────────────────────────────────────

TEST_MESSAGE = (
    "🔔 Test notification from Anonymous Feedback System\n\n"
    "Your Telegram integration is working correctly!"
)


def _telegram_error_message(description: str) -> str:
    if "chat not found" in description:
        return "Chat not found. Make sure you've started a conversation with the bot first by sending /start to it."
    if "bot was blocked" in description:
        return "The bot was blocked by the user. Please unblock the bot and try again."
    if "Unauthorized" in description:
        return "Invalid bot token. Please check your bot token from @BotFather."
    return description or "Failed to send test message"


async def send_telegram_test(bot_token: str, chat_id: str) -> TelegramTestResult:
    """Send a test message and translate Bot API errors into admin guidance."""
    bot_token = (bot_token or "").strip()
    chat_id = (chat_id or "").strip()
    if not bot_token:
        return TelegramTestResult(
            success=False, message="Bot token is required. Get one from @BotFather on Telegram.",
        )
    if not chat_id:
        return TelegramTestResult(
            success=False,
            message=(
                "Chat ID is required. Send a message to your bot first, then use "
                "@userinfobot or check the Telegram API to get your chat ID."
            ),
        )

    client = get_http_client(PURPOSE_NOTIFICATIONS)
    try:
        resp = await client.post(
            TELEGRAM_API.format(token=bot_token),
            json={"chat_id": chat_id, "text": TEST_MESSAGE, "parse_mode": "HTML"},
        )
        result = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Telegram test failed: %s", type(exc).__name__)
        return TelegramTestResult(
            success=False,
            message="Failed to connect to Telegram API. Please check your network connection.",
        )

    if not result.get("ok"):
        return TelegramTestResult(success=False, message=_telegram_error_message(result.get("description", "")))
    return TelegramTestResult(success=True, message="Test notification sent successfully!")
