"""Shared / common schemas: enums, camelCase base model, response envelopes.

Internally everything is snake_case. The JSON API speaks camelCase, and the
mapping happens here, once, through ``CamelModel``'s alias generator.
"""
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


# ── Enums ──────────────────────────────────────────────────────────────

class FeedbackType(str, Enum):
    SUGGESTION = "suggestion"
    CONCERN = "concern"
    PRAISE = "praise"
    QUESTION = "question"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


URGENT_LEVELS = {Urgency.HIGH.value, Urgency.CRITICAL.value}


class FeedbackStatus(str, Enum):
    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"
    REJECTED = "rejected"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    MIXED = "mixed"


class QuestionType(str, Enum):
    RATING = "rating"
    MULTIPLE_CHOICE = "multiple_choice"
    SELECT = "select"
    TEXT = "text"
    TEXTAREA = "textarea"


CHOICE_QUESTION_TYPES = {QuestionType.MULTIPLE_CHOICE.value, QuestionType.SELECT.value}


class NotificationType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    TELEGRAM = "telegram"
    WEBHOOK = "webhook"


class NotificationEvent(str, Enum):
    NEW_FEEDBACK = "new_feedback"
    URGENT_FEEDBACK = "urgent_feedback"
    CLARIFICATION_RESPONSE = "clarification_response"


class WebhookEventType(str, Enum):
    FEEDBACK_SUBMITTED = "feedback.submitted"
    FEEDBACK_UPDATED = "feedback.updated"
    CLARIFICATION_REQUESTED = "clarification.requested"
    CLARIFICATION_RESPONDED = "clarification.responded"


# ── Base model ─────────────────────────────────────────────────────────

class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, serializes camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Envelopes ──────────────────────────────────────────────────────────

class Envelope(CamelModel, Generic[T]):
    success: bool = True
    data: T


class PageMeta(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PagedEnvelope(CamelModel, Generic[T]):
    success: bool = True
    data: list[T]
    meta: PageMeta


# ── Common Responses ───────────────────────────────────────────────────

class MessageResponse(CamelModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
