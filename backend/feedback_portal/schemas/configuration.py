"""Schemas for reference data and portal settings managed from the admin side."""
from __future__ import annotations

from datetime import datetime

from pydantic import Field, HttpUrl, field_validator, model_validator

from feedback_portal.schemas.common import (
    CHOICE_QUESTION_TYPES,
    CamelModel,
    NotificationType,
    QuestionType,
)


def _not_null(cls, v):
    # Omitting a key leaves the column alone; null cannot clear a required column
    if v is None:
        raise ValueError("must not be null")
    return v


# ---- Categories ----

class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    label: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    color: str | None = None
    icon: str | None = None


class CategoryUpdate(CamelModel):
    label: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    color: str | None = None
    icon: str | None = None
    is_active: bool | None = None
    sort_order: int | None = None

    _no_nulls = field_validator("label", "color", "icon", "is_active", "sort_order")(_not_null)


class CategoryOut(CamelModel):
    id: str
    name: str
    label: str
    description: str | None
    color: str
    icon: str
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime


# ---- Tags ----

class TagCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str | None = None


class TagUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    color: str | None = None
    is_active: bool | None = None
    sort_order: int | None = None

    _no_nulls = field_validator("name", "color", "is_active", "sort_order")(_not_null)


class TagOut(CamelModel):
    id: str
    name: str
    color: str
    is_active: bool
    sort_order: int
    created_at: datetime


# ---- Questions ----

class QuestionCreate(CamelModel):
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType
    description: str | None = None
    options: list[str] | None = None
    is_required: bool = False
    min_value: int | None = None
    max_value: int | None = None

    @model_validator(mode="after")
    def _check_type_fields(self) -> "QuestionCreate":
        if self.question_type.value in CHOICE_QUESTION_TYPES and not self.options:
            raise ValueError("options are required for choice questions")
        if self.question_type == QuestionType.RATING:
            if self.min_value is None:
                self.min_value = 1
            if self.max_value is None:
                self.max_value = 5
            if self.min_value >= self.max_value:
                raise ValueError("min_value must be lower than max_value")
        return self


class QuestionUpdate(CamelModel):
    question_text: str | None = Field(None, min_length=1)
    description: str | None = None
    options: list[str] | None = None
    is_required: bool | None = None
    is_active: bool | None = None
    sort_order: int | None = None
    min_value: int | None = None
    max_value: int | None = None

    _no_nulls = field_validator("question_text", "is_required", "is_active", "sort_order")(_not_null)


class QuestionOut(CamelModel):
    id: str
    question_type: str
    question_text: str
    description: str | None
    options: list[str] | None
    is_required: bool
    is_active: bool
    sort_order: int
    min_value: int | None
    max_value: int | None


# ---- Branding ----

class BrandingUpdate(CamelModel):
    site_name: str | None = Field(None, min_length=1, max_length=255)
    site_description: str | None = None
    logo_url: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None
    accent_color: str | None = None
    trust_badge_1_title: str | None = None
    trust_badge_1_description: str | None = None
    trust_badge_2_title: str | None = None
    trust_badge_2_description: str | None = None
    trust_badge_3_title: str | None = None
    trust_badge_3_description: str | None = None
    custom_css: str | None = None

    _no_nulls = field_validator(
        "site_name", "primary_color", "secondary_color", "accent_color",
        "trust_badge_1_title", "trust_badge_2_title", "trust_badge_3_title",
    )(_not_null)


class BrandingOut(CamelModel):
    site_name: str = "Anonymous Feedback Portal"
    site_description: str | None = None
    logo_url: str | None = None
    primary_color: str = "#10b981"
    secondary_color: str = "#6366f1"
    accent_color: str = "#f59e0b"
    trust_badge_1_title: str = "End-to-End Encryption"
    trust_badge_1_description: str | None = None
    trust_badge_2_title: str = "No IP Tracking"
    trust_badge_2_description: str | None = None
    trust_badge_3_title: str = "Anonymous Follow-ups"
    trust_badge_3_description: str | None = None
    custom_css: str | None = None
    updated_at: datetime | None = None


# ---- Notification settings ----

class NotificationSettingUpdate(CamelModel):
    is_enabled: bool | None = None
    config: dict | None = None
    notify_on_new_feedback: bool | None = None
    notify_on_urgent: bool | None = None
    notify_on_clarification_response: bool | None = None
    notify_daily_digest: bool | None = None


class NotificationSettingOut(CamelModel):
    id: str
    notification_type: NotificationType
    is_enabled: bool
    config: dict  # secrets masked
    notify_on_new_feedback: bool
    notify_on_urgent: bool
    notify_on_clarification_response: bool
    notify_daily_digest: bool
    updated_at: datetime


class TelegramTestRequest(CamelModel):
    bot_token: str = ""
    chat_id: str = ""


class TelegramTestResult(CamelModel):
    success: bool
    message: str


# ---- Submission form ----

class FormConfig(CamelModel):
    categories: list[CategoryOut]
    tags: list[TagOut]
    questions: list[QuestionOut]
    branding: BrandingOut


# ---- Webhooks ----

class WebhookRegistration(CamelModel):
    url: HttpUrl


class WebhookListResponse(CamelModel):
    success: bool = True
    message: str | None = None
    webhooks: list[str]


# ---- Reports ----

class ReportRequest(CamelModel):
    status: str | None = None
    limit: int = Field(100, ge=1, le=500)


class ReportResponse(CamelModel):
    success: bool
    report: str | None
    item_count: int
