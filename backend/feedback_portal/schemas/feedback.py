"""Feedback schemas for submission, tracking, triage and analytics."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from feedback_portal.models import Feedback
from feedback_portal.schemas.common import (
    CamelModel,
    FeedbackStatus,
    FeedbackType,
    ModerationStatus,
    Urgency,
)


# ── Submission ─────────────────────────────────────────────────────────

class QuestionAnswer(CamelModel):
    type: str | None = None
    value: str | int | float


class FeedbackSubmission(CamelModel):
    category: str = Field(..., min_length=1, max_length=100)
    feedback_type: FeedbackType
    subject: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    urgency: Urgency = Urgency.MEDIUM
    tags: list[str] = Field(default_factory=list)
    impact: str | None = None
    suggested_solution: str | None = None
    allow_follow_up: bool = True
    question_responses: dict[str, QuestionAnswer] = Field(default_factory=dict)

    @field_validator("urgency", "tags", "allow_follow_up", "question_responses", mode="before")
    @classmethod
    def _null_to_default(cls, v, info):
        # An explicit null means "use the default", same as omitting the key
        if v is not None:
            return v
        return {
            "urgency": Urgency.MEDIUM,
            "tags": [],
            "allow_follow_up": True,
            "question_responses": {},
        }[info.field_name]

    @field_validator("subject", "description")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("impact", "suggested_solution")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


class SubmissionResult(CamelModel):
    access_code: str
    id: str
    tracking_url: str


# ── Read models ────────────────────────────────────────────────────────

class ClarificationOut(CamelModel):
    id: str
    question: str
    response: str | None
    created_at: datetime
    responded_at: datetime | None


class QuestionResponseOut(CamelModel):
    question_id: str
    question_text: str
    question_type: str
    answer: str | int | None


class FeedbackEntry(CamelModel):
    """Full admin view of a feedback item with joined category and tags."""

    id: str
    access_code_hash: str
    category_id: str | None
    category: str
    category_label: str | None
    feedback_type: FeedbackType
    urgency: Urgency
    subject: str
    description: str
    impact: str | None
    suggested_solution: str | None
    allow_follow_up: bool
    status: FeedbackStatus
    moderation_status: ModerationStatus
    moderation_flags: list[str]
    moderation_score: int
    keywords: list[str]
    ai_category: str | None
    ai_sentiment: str | None
    ai_priority: str | None
    ai_summary: str | None
    ai_keywords: list[str] | None
    ai_category_suggestion: str | None
    ai_urgency_suggestion: str | None
    ai_action_items: list[str] | None
    admin_notes: list[str]
    tags: list[str]
    clarifications: list[ClarificationOut]
    responses: list[QuestionResponseOut] = []
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_feedback(cls, fb: Feedback, include_responses: bool = True) -> "FeedbackEntry":
        return cls(
            id=fb.id,
            access_code_hash=fb.access_code_hash,
            category_id=fb.category_id,
            category=fb.category.name if fb.category else "",
            category_label=fb.category.label if fb.category else None,
            feedback_type=fb.feedback_type,
            urgency=fb.urgency,
            subject=fb.subject,
            description=fb.description,
            impact=fb.impact,
            suggested_solution=fb.suggested_solution,
            allow_follow_up=fb.allow_follow_up,
            status=fb.status,
            moderation_status=fb.moderation_status,
            moderation_flags=list(fb.moderation_flags or []),
            moderation_score=fb.moderation_score,
            keywords=list(fb.keywords or []),
            ai_category=fb.ai_category,
            ai_sentiment=fb.ai_sentiment,
            ai_priority=fb.ai_priority,
            ai_summary=fb.ai_summary,
            ai_keywords=fb.ai_keywords,
            ai_category_suggestion=fb.ai_category_suggestion,
            ai_urgency_suggestion=fb.ai_urgency_suggestion,
            ai_action_items=fb.ai_action_items,
            admin_notes=list(fb.admin_notes or []),
            tags=[t.name for t in fb.tags],
            clarifications=[ClarificationOut.model_validate(c) for c in fb.clarifications],
            responses=_responses(fb) if include_responses else [],
            resolved_at=fb.resolved_at,
            created_at=fb.created_at,
            updated_at=fb.updated_at,
        )


class TrackedFeedback(CamelModel):
    """What the anonymous submitter sees when presenting their access code.

    Moderation data, AI analysis and admin notes stay on the admin side.
    """

    id: str
    category: str
    category_label: str | None
    feedback_type: FeedbackType
    urgency: Urgency
    subject: str
    description: str
    impact: str | None
    suggested_solution: str | None
    allow_follow_up: bool
    status: FeedbackStatus
    tags: list[str]
    clarifications: list[ClarificationOut]
    responses: list[QuestionResponseOut]
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_feedback(cls, fb: Feedback) -> "TrackedFeedback":
        return cls(
            id=fb.id,
            category=fb.category.name if fb.category else "",
            category_label=fb.category.label if fb.category else None,
            feedback_type=fb.feedback_type,
            urgency=fb.urgency,
            subject=fb.subject,
            description=fb.description,
            impact=fb.impact,
            suggested_solution=fb.suggested_solution,
            allow_follow_up=fb.allow_follow_up,
            status=fb.status,
            tags=[t.name for t in fb.tags],
            clarifications=[ClarificationOut.model_validate(c) for c in fb.clarifications],
            responses=_responses(fb),
            resolved_at=fb.resolved_at,
            created_at=fb.created_at,
            updated_at=fb.updated_at,
        )


def _responses(fb: Feedback) -> list[QuestionResponseOut]:
    return [
        QuestionResponseOut(
            question_id=r.question_id,
            question_text=r.question.question_text if r.question else "",
            question_type=r.question.question_type if r.question else "",
            answer=r.answer,
        )
        for r in fb.responses
    ]


# ── Tracking portal requests ───────────────────────────────────────────

class TrackRequest(CamelModel):
    access_code: str = Field(..., min_length=1, max_length=64)


class ClarificationAnswer(CamelModel):
    access_code: str = Field(..., min_length=1, max_length=64)
    response: str = Field(..., min_length=1)


# ── Admin mutations ────────────────────────────────────────────────────

class FeedbackPatch(CamelModel):
    action: Literal["update_status", "request_clarification", "add_note", "update_moderation"]
    status: FeedbackStatus | None = None
    question: str | None = None
    note: str | None = None
    moderation_status: ModerationStatus | None = None
    reason: str | None = None


class ModerationDecision(CamelModel):
    status: ModerationStatus
    reason: str | None = None


class BulkModerationRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)
    status: Literal["approved", "rejected"]
    reason: str | None = None


class BulkModerationResult(CamelModel):
    succeeded: list[str]
    failed: list[str]

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)


class AdminNoteCreate(CamelModel):
    note: str = Field(..., min_length=1)


class TagAssignment(CamelModel):
    tags: list[str]


# ── Analytics ──────────────────────────────────────────────────────────

class BreakdownItem(CamelModel):
    name: str
    value: int


class DailyCount(CamelModel):
    date: str
    count: int


class KeywordCount(CamelModel):
    word: str
    count: int


class Analytics(CamelModel):
    total: int = 0
    resolved: int = 0
    resolution_rate: int = 0
    pending: int = 0
    in_progress: int = 0
    avg_resolution_hours: float | None = None
    status_breakdown: list[BreakdownItem] = []
    category_breakdown: list[BreakdownItem] = []
    urgency_breakdown: list[BreakdownItem] = []
    type_breakdown: list[BreakdownItem] = []
    sentiment_breakdown: list[BreakdownItem] = []
    daily_trend: list[DailyCount] = []
    top_keywords: list[KeywordCount] = []


class ModerationStats(CamelModel):
    total: int = 0
    pending: int = 0
    flagged: int = 0
    approved: int = 0
    rejected: int = 0
