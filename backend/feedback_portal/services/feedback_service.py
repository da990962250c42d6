"""Feedback workflows: submission pipeline, tracking, clarifications, triage.

Routers call these functions; they orchestrate the repositories, the
moderation heuristic, the AI collaborator, notifications and the webhook
registry. Domain errors are ``ValueError`` subclasses that the routers map
to HTTP status codes. Misses come back as ``None``.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from feedback_portal.config import get_settings
from feedback_portal.models import Clarification, Feedback, Question
from feedback_portal.schemas.common import (
    CHOICE_QUESTION_TYPES,
    FeedbackStatus,
    ModerationStatus,
    NotificationEvent,
    QuestionType,
    WebhookEventType,
)
from feedback_portal.schemas.configuration import ReportResponse
from feedback_portal.schemas.feedback import (
    BulkModerationResult,
    FeedbackSubmission,
    QuestionAnswer,
    SubmissionResult,
)
from feedback_portal.schemas.notification import NotificationData
from feedback_portal.services.access_code import generate_access_code, hash_access_code, is_well_formed
from feedback_portal.services.ai_categorization import (
    analysis_fields,
    analyze_feedback,
    generate_feedback_report,
    merge_tag_names,
)
from feedback_portal.services.config_repository import ConfigRepository
from feedback_portal.services.feedback_repository import FeedbackRepository
from feedback_portal.services.moderation import extract_keywords, moderate_content
from feedback_portal.services.notifications import NotificationDispatcher
from feedback_portal.services.webhook_registry import WebhookRegistry, webhook_registry

logger = logging.getLogger(__name__)


class FollowUpNotAllowed(ValueError):
    """The submitter opted out of follow-up questions."""


class ClarificationAlreadyAnswered(ValueError):
    """A clarification can be answered only once."""


class InvalidQuestionResponse(ValueError):
    """An answer does not fit its question's type, bounds or options."""


# ── Question responses ─────────────────────────────────────────────────

def _typed_answer(question: Question, value: Any) -> dict[str, Any] | None:
    """Column values for one answer, or ``None`` for an empty text answer."""
    qtype = question.question_type

    if qtype == QuestionType.RATING.value:
        low = question.min_value if question.min_value is not None else 1
        high = question.max_value if question.max_value is not None else 5
        if isinstance(value, bool):
            raise InvalidQuestionResponse(f"Rating expected for '{question.question_text}'")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidQuestionResponse(f"Rating expected for '{question.question_text}'")
        if not number.is_integer() or not low <= number <= high:
            raise InvalidQuestionResponse(
                f"Rating for '{question.question_text}' must be a whole number from {low} to {high}"
            )
        return {"response_number": int(number)}

    if qtype in CHOICE_QUESTION_TYPES:
        option = str(value)
        if option not in (question.options or []):
            raise InvalidQuestionResponse(f"'{option}' is not an option of '{question.question_text}'")
        return {"response_option": option}

    text = str(value).strip()
    return {"response_value": text} if text else None


def build_question_responses(
    questions: list[Question], answers: dict[str, QuestionAnswer],
) -> list[dict[str, Any]]:
    """Validate submitted answers against the active questions.

    Answers to unknown or inactive questions are ignored.
    """
    by_id = {q.id: q for q in questions}
    rows: list[dict[str, Any]] = []
    for question_id, answer in answers.items():
        question = by_id.get(question_id)
        if question is None:
            logger.debug("Ignoring answer to unknown question %s", question_id[:8])
            continue
        typed = _typed_answer(question, answer.value)
        if typed is not None:
            rows.append({"question_id": question_id, **typed})
    return rows


# ── Fan-out helpers ────────────────────────────────────────────────────

def _notification_data(feedback: Feedback) -> NotificationData:
    return NotificationData(
        feedback_id=feedback.id,
        subject=feedback.subject,
        category=feedback.category.label if feedback.category else None,
        urgency=feedback.urgency,
        feedback_type=feedback.feedback_type,
    )


def _webhook_data(feedback: Feedback) -> dict[str, Any]:
    return {
        "id": feedback.id,
        "category": feedback.category.name if feedback.category else None,
        "feedbackType": feedback.feedback_type,
        "urgency": feedback.urgency,
        "status": feedback.status,
        "moderationStatus": feedback.moderation_status,
    }


async def _notify(db: Session, event: str, feedback: Feedback) -> None:
    try:
        await NotificationDispatcher(db).send(event, _notification_data(feedback))
    except Exception:
        logger.exception("Notification dispatch for %s failed", event)


# ── Submission ─────────────────────────────────────────────────────────

async def submit_feedback(
    db: Session,
    submission: FeedbackSubmission,
    registry: WebhookRegistry = webhook_registry,
) -> SubmissionResult:
    """Moderate, analyze, store and announce one anonymous submission.

    The plaintext access code is returned here and nowhere else.
    """
    settings = get_settings()
    config = ConfigRepository(db)

    responses = build_question_responses(
        config.list_questions(active_only=True), submission.question_responses,
    )

    access_code = generate_access_code()
    text = f"{submission.description} {submission.subject}"
    moderation = moderate_content(text)
    keywords = extract_keywords(text)

    categories = config.list_categories(active_only=True)
    category_names = [c.name for c in categories]
    category = next((c for c in categories if c.name == submission.category), None)
    if category is None:
        logger.info("Submission names unknown category %r; storing uncategorized", submission.category)
    active_tags = config.list_tags(active_only=True)

    outcome = await analyze_feedback(
        submission.subject,
        submission.description,
        submission.impact,
        submission.suggested_solution,
        category_names,
        [t.name for t in active_tags],
    )
    if not outcome.ok:
        logger.info("Continuing without AI analysis: %s", outcome.unavailable_reason)

    tag_names = merge_tag_names(submission.tags, outcome)
    tag_ids = [t.id for t in active_tags if t.name in tag_names]

    record = {
        "access_code_hash": hash_access_code(access_code),
        "category_id": category.id if category else None,
        "feedback_type": submission.feedback_type.value,
        "urgency": submission.urgency.value,
        "subject": submission.subject,
        "description": submission.description,
        "impact": submission.impact,
        "suggested_solution": submission.suggested_solution,
        "allow_follow_up": submission.allow_follow_up,
        "status": FeedbackStatus.RECEIVED.value,
        "moderation_status": (
            ModerationStatus.APPROVED.value if moderation.passed else ModerationStatus.FLAGGED.value
        ),
        "moderation_flags": moderation.flags,
        "moderation_score": moderation.score,
        "keywords": keywords,
        **analysis_fields(outcome, category_names),
    }
    feedback = FeedbackRepository(db).create(record, tag_ids, responses)

    await _notify(db, NotificationEvent.NEW_FEEDBACK.value, feedback)
    await registry.trigger(WebhookEventType.FEEDBACK_SUBMITTED.value, _webhook_data(feedback))

    return SubmissionResult(
        access_code=access_code,
        id=feedback.id,
        tracking_url=f"{settings.TRACKING_PATH}?code={access_code}",
    )


# ── Submitter side ─────────────────────────────────────────────────────

def track_feedback(db: Session, access_code: str) -> Feedback | None:
    """Resolve an access code to its feedback; ``None`` for any miss."""
    if not is_well_formed(access_code):
        return None
    return FeedbackRepository(db).get_by_access_code_hash(hash_access_code(access_code))


async def respond_to_clarification(
    db: Session,
    access_code: str,
    clarification_id: str,
    response: str,
    registry: WebhookRegistry = webhook_registry,
) -> Clarification | None:
    """Answer a clarification as the owner of ``access_code``.

    A wrong code, an unknown clarification and a clarification of another
    item all return ``None``. Raises ``ClarificationAlreadyAnswered`` on a
    second answer.
    """
    if not is_well_formed(access_code):
        return None
    repo = FeedbackRepository(db)
    code_hash = hash_access_code(access_code)
    clarification = repo.get_owned_clarification(code_hash, clarification_id)
    if clarification is None:
        return None
    if clarification.is_answered:
        raise ClarificationAlreadyAnswered("This clarification has already been answered")

    clarification = repo.respond_to_clarification(code_hash, clarification_id, response)
    feedback = repo.get_by_id(clarification.feedback_id)

    await _notify(db, NotificationEvent.CLARIFICATION_RESPONSE.value, feedback)
    await registry.trigger(
        WebhookEventType.CLARIFICATION_RESPONDED.value,
        {"id": feedback.id, "clarificationId": clarification.id},
    )
    return clarification


# ── Admin side ─────────────────────────────────────────────────────────

async def update_status(
    db: Session,
    feedback_id: str,
    status: FeedbackStatus,
    registry: WebhookRegistry = webhook_registry,
) -> Feedback | None:
    feedback = FeedbackRepository(db).update(feedback_id, {"status": FeedbackStatus(status).value})
    if feedback is not None:
        logger.info("Feedback %s status -> %s", feedback_id[:8], feedback.status)
        await registry.trigger(WebhookEventType.FEEDBACK_UPDATED.value, _webhook_data(feedback))
    return feedback


async def request_clarification(
    db: Session,
    feedback_id: str,
    question: str,
    registry: WebhookRegistry = webhook_registry,
) -> Clarification | None:
    """Ask the anonymous submitter a follow-up question.

    Raises ``FollowUpNotAllowed`` when the submitter opted out.
    """
    repo = FeedbackRepository(db)
    feedback = repo.get_by_id(feedback_id)
    if feedback is None:
        return None
    if not feedback.allow_follow_up:
        raise FollowUpNotAllowed("The submitter did not allow follow-up questions")

    clarification = repo.create_clarification(feedback_id, question)
    logger.info("Clarification %s requested on feedback %s", clarification.id[:8], feedback_id[:8])
    await registry.trigger(
        WebhookEventType.CLARIFICATION_REQUESTED.value,
        {"id": feedback_id, "clarificationId": clarification.id},
    )
    return clarification


def add_note(db: Session, feedback_id: str, note: str) -> Feedback | None:
    return FeedbackRepository(db).append_admin_note(feedback_id, note)


async def moderate(
    db: Session,
    feedback_id: str,
    status: ModerationStatus,
    reason: str | None = None,
    registry: WebhookRegistry = webhook_registry,
) -> Feedback | None:
    feedback = FeedbackRepository(db).update_moderation_status(
        feedback_id, ModerationStatus(status).value, reason,
    )
    if feedback is not None:
        await registry.trigger(WebhookEventType.FEEDBACK_UPDATED.value, _webhook_data(feedback))
    return feedback


async def bulk_moderate(
    db: Session,
    ids: list[str],
    status: str,
    reason: str | None = None,
    registry: WebhookRegistry = webhook_registry,
) -> BulkModerationResult:
    repo = FeedbackRepository(db)
    result = repo.bulk_update_moderation(ids, ModerationStatus(status).value, reason)
    for feedback_id in result.succeeded:
        feedback = repo.get_by_id(feedback_id)
        if feedback is not None:
            await registry.trigger(WebhookEventType.FEEDBACK_UPDATED.value, _webhook_data(feedback))
    return result


def set_tags(db: Session, feedback_id: str, tag_names: list[str]) -> Feedback | None:
    """Replace an item's tags by name; unknown names are ignored."""
    tags = ConfigRepository(db).get_tags_by_names(tag_names, active_only=False)
    return FeedbackRepository(db).update_tags(feedback_id, [t.id for t in tags])


async def generate_report(db: Session, status: str | None = None, limit: int = 100) -> ReportResponse:
    """AI trend report over the most recent feedback."""
    items, _ = FeedbackRepository(db).list_all(status=status, limit=limit)
    rows = [
        {
            "subject": f.subject,
            "description": f.description,
            "category": f.category.label if f.category else "Uncategorized",
            "urgency": f.urgency,
            "feedback_type": f.feedback_type,
            "status": f.status,
            "created_at": f.created_at.isoformat(),
        }
        for f in items
    ]
    report = await generate_feedback_report(rows)
    return ReportResponse(success=report is not None, report=report, item_count=len(rows))
