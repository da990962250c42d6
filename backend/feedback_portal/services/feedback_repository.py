"""Feedback repository: the feedback entity and its satellites.

All reads eager-load the category, tags, clarifications and question
responses so the API layer can serialize without lazy loads. Misses return
``None``; callers turn that into a 404.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from feedback_portal.models import Category, Clarification, Feedback, FeedbackResponse, FeedbackTag
from feedback_portal.schemas.common import FeedbackStatus, ModerationStatus
from feedback_portal.schemas.feedback import (
    Analytics,
    BreakdownItem,
    BulkModerationResult,
    DailyCount,
    KeywordCount,
    ModerationStats,
)
from feedback_portal.utils.helpers import as_utc, timestamped_note, utcnow

logger = logging.getLogger(__name__)

TREND_DAYS = 30
TOP_KEYWORDS = 20

# Columns an admin patch may touch
UPDATABLE_FIELDS = frozenset({
    "category_id", "feedback_type", "urgency", "subject", "description", "impact",
    "suggested_solution", "allow_follow_up", "status", "moderation_status",
    "moderation_flags", "moderation_score", "keywords", "ai_category",
    "ai_sentiment", "ai_priority", "ai_summary", "ai_keywords",
    "ai_category_suggestion", "ai_urgency_suggestion", "ai_action_items",
})

RESOLVED = FeedbackStatus.RESOLVED.value


class FeedbackRepository:
    """Persistence for feedback, tag links, responses and clarifications."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Feedback).options(
            joinedload(Feedback.category),
            selectinload(Feedback.tags),
            selectinload(Feedback.clarifications),
            selectinload(Feedback.responses).joinedload(FeedbackResponse.question),
        )

    # ── Create ─────────────────────────────────────────────────────────

    def create(
        self,
        record: dict[str, Any],
        tag_ids: list[str] | None = None,
        responses: list[dict[str, Any]] | None = None,
    ) -> Feedback:
        """Insert the feedback row, its tag links and its question responses.

        Everything is written in one transaction; any failure rolls back all
        of it and re-raises.
        """
        try:
            feedback = Feedback(**record)
            self.db.add(feedback)
            self.db.flush()
            for tag_id in dict.fromkeys(tag_ids or []):
                self.db.add(FeedbackTag(feedback_id=feedback.id, tag_id=tag_id))
            for response in responses or []:
                self.db.add(FeedbackResponse(feedback_id=feedback.id, **response))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Feedback insert failed; transaction rolled back")
            raise
        logger.info(
            "Stored feedback %s (moderation=%s, %d tag(s), %d response(s))",
            feedback.id[:8], feedback.moderation_status, len(tag_ids or []), len(responses or []),
        )
        return self.get_by_id(feedback.id)

    # ── Reads ──────────────────────────────────────────────────────────

    def get_by_id(self, feedback_id: str) -> Feedback | None:
        return self._query().filter(Feedback.id == feedback_id).first()

    def get_by_access_code_hash(self, access_code_hash: str) -> Feedback | None:
        return self._query().filter(Feedback.access_code_hash == access_code_hash).first()

    def list_all(
        self,
        status: str | None = None,
        moderation_status: str | None = None,
        category: str | None = None,
        urgency: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[Feedback], int]:
        """Filtered page of feedback, newest first, plus the filtered total."""
        base = self.db.query(Feedback)
        if status:
            base = base.filter(Feedback.status == status)
        if moderation_status:
            base = base.filter(Feedback.moderation_status == moderation_status)
        if urgency:
            base = base.filter(Feedback.urgency == urgency)
        if category:
            base = base.join(Category, Feedback.category_id == Category.id).filter(Category.name == category)

        total = base.count()
        page = base.options(
            joinedload(Feedback.category),
            selectinload(Feedback.tags),
            selectinload(Feedback.clarifications),
            selectinload(Feedback.responses).joinedload(FeedbackResponse.question),
        ).order_by(Feedback.created_at.desc(), Feedback.id)
        if offset:
            page = page.offset(offset)
        if limit is not None:
            page = page.limit(limit)
        return page.all(), total

    def list_moderation_queue(self) -> list[Feedback]:
        """Items waiting on a human: flagged first, then pending, newest first."""
        items = (
            self._query()
            .filter(Feedback.moderation_status.in_([
                ModerationStatus.FLAGGED.value, ModerationStatus.PENDING.value,
            ]))
            .order_by(Feedback.created_at.desc())
            .all()
        )
        return sorted(items, key=lambda f: f.moderation_status != ModerationStatus.FLAGGED.value)

    # ── Updates ────────────────────────────────────────────────────────

    def update(self, feedback_id: str, patch: dict[str, Any]) -> Feedback | None:
        """Apply a partial patch.

        Entering ``resolved`` stamps ``resolved_at``; staying resolved keeps
        the original stamp; leaving resolved clears it.
        """
        feedback = self.db.get(Feedback, feedback_id)
        if feedback is None:
            return None

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        new_status = patch.get("status")
        if new_status is not None:
            if new_status == RESOLVED and feedback.status != RESOLVED:
                feedback.resolved_at = utcnow()
            elif new_status != RESOLVED:
                feedback.resolved_at = None

        for key, value in patch.items():
            setattr(feedback, key, value)
        self.db.commit()
        return self.get_by_id(feedback_id)

    def update_tags(self, feedback_id: str, tag_ids: list[str]) -> Feedback | None:
        """Replace the tag links of one item."""
        feedback = self.db.get(Feedback, feedback_id)
        if feedback is None:
            return None
        self.db.query(FeedbackTag).filter(FeedbackTag.feedback_id == feedback_id).delete(
            synchronize_session=False
        )
        for tag_id in dict.fromkeys(tag_ids):
            self.db.add(FeedbackTag(feedback_id=feedback_id, tag_id=tag_id))
        self.db.commit()
        return self.get_by_id(feedback_id)

    def append_admin_note(self, feedback_id: str, note: str) -> Feedback | None:
        feedback = self.db.get(Feedback, feedback_id)
        if feedback is None:
            return None
        # Reassign so the JSON column is marked dirty
        feedback.admin_notes = [*(feedback.admin_notes or []), timestamped_note(note)]
        self.db.commit()
        return self.get_by_id(feedback_id)

    def _set_moderation(self, feedback: Feedback, status: str, reason: str | None) -> None:
        feedback.moderation_status = status
        if status == ModerationStatus.REJECTED.value and reason:
            feedback.admin_notes = [
                *(feedback.admin_notes or []),
                timestamped_note(f"Rejected: {reason}"),
            ]

    def update_moderation_status(
        self, feedback_id: str, status: str, reason: str | None = None,
    ) -> Feedback | None:
        feedback = self.db.get(Feedback, feedback_id)
        if feedback is None:
            return None
        self._set_moderation(feedback, status, reason)
        self.db.commit()
        logger.info("Feedback %s moderation -> %s", feedback_id[:8], status)
        return self.get_by_id(feedback_id)

    def bulk_update_moderation(
        self, ids: list[str], status: str, reason: str | None = None,
    ) -> BulkModerationResult:
        """Moderate many items, each inside its own savepoint."""
        succeeded: list[str] = []
        failed: list[str] = []
        for feedback_id in dict.fromkeys(ids):
            feedback = self.db.get(Feedback, feedback_id)
            if feedback is None:
                failed.append(feedback_id)
                continue
            try:
                with self.db.begin_nested():
                    self._set_moderation(feedback, status, reason)
                succeeded.append(feedback_id)
            except SQLAlchemyError as exc:
                logger.warning("Bulk moderation failed for %s: %s", feedback_id[:8], exc)
                failed.append(feedback_id)
        self.db.commit()
        logger.info("Bulk moderation -> %s: %d ok, %d failed", status, len(succeeded), len(failed))
        return BulkModerationResult(succeeded=succeeded, failed=failed)

    def delete(self, feedback_id: str) -> bool:
        feedback = self.db.get(Feedback, feedback_id)
        if feedback is None:
            return False
        self.db.delete(feedback)
        self.db.commit()
        logger.info("Deleted feedback %s", feedback_id[:8])
        return True

    # ── Clarifications ─────────────────────────────────────────────────

    def create_clarification(self, feedback_id: str, question: str) -> Clarification:
        clarification = Clarification(feedback_id=feedback_id, question=question.strip())
        self.db.add(clarification)
        self.db.commit()
        self.db.refresh(clarification)
        return clarification

    def get_owned_clarification(
        self, access_code_hash: str, clarification_id: str,
    ) -> Clarification | None:
        """The clarification, but only if it belongs to the code's feedback."""
        return (
            self.db.query(Clarification)
            .join(Feedback, Clarification.feedback_id == Feedback.id)
            .filter(
                Clarification.id == clarification_id,
                Feedback.access_code_hash == access_code_hash,
            )
            .first()
        )

    def respond_to_clarification(
        self, access_code_hash: str, clarification_id: str, response: str,
    ) -> Clarification | None:
        """Record the submitter's answer.

        Returns ``None`` when the pair does not match. Callers must check
        ``is_answered`` first; an answered clarification is returned untouched.
        """
        clarification = self.get_owned_clarification(access_code_hash, clarification_id)
        if clarification is None or clarification.is_answered:
            return clarification
        clarification.response = response.strip()
        clarification.responded_at = utcnow()
        self.db.commit()
        self.db.refresh(clarification)
        return clarification

    # ── Aggregates ─────────────────────────────────────────────────────

    def get_statistics(self) -> Analytics:
        items = (
            self.db.query(Feedback)
            .options(joinedload(Feedback.category))
            .order_by(Feedback.created_at)
            .all()
        )
        total = len(items)
        if total == 0:
            return Analytics()

        resolved_items = [f for f in items if f.status == RESOLVED]
        resolved = len(resolved_items)

        def breakdown(values) -> list[BreakdownItem]:
            return [BreakdownItem(name=k, value=v) for k, v in Counter(values).items()]

        since = (utcnow() - timedelta(days=TREND_DAYS)).date()
        daily = Counter(
            created.date().isoformat()
            for created in (as_utc(f.created_at) for f in items)
            if created.date() >= since
        )

        keywords: Counter = Counter()
        for f in items:
            # Each word counts once per item across both sources
            keywords.update(list(dict.fromkeys([*(f.keywords or []), *(f.ai_keywords or [])])))
        top = sorted(keywords.items(), key=lambda kv: kv[1], reverse=True)[:TOP_KEYWORDS]

        durations = [
            (as_utc(f.resolved_at) - as_utc(f.created_at)).total_seconds() / 3600
            for f in resolved_items
            if f.resolved_at is not None
        ]

        return Analytics(
            total=total,
            resolved=resolved,
            resolution_rate=int(resolved * 100 / total + 0.5),
            pending=sum(1 for f in items if f.status == FeedbackStatus.RECEIVED.value),
            in_progress=sum(1 for f in items if f.status == FeedbackStatus.IN_PROGRESS.value),
            avg_resolution_hours=round(sum(durations) / len(durations), 1) if durations else None,
            status_breakdown=breakdown(f.status for f in items),
            category_breakdown=breakdown(
                f.category.label if f.category else "Uncategorized" for f in items
            ),
            urgency_breakdown=breakdown(f.urgency for f in items),
            type_breakdown=breakdown(f.feedback_type for f in items),
            sentiment_breakdown=breakdown(f.ai_sentiment for f in items if f.ai_sentiment),
            daily_trend=[DailyCount(date=d, count=c) for d, c in sorted(daily.items())],
            top_keywords=[KeywordCount(word=w, count=c) for w, c in top],
        )

    def get_moderation_stats(self) -> ModerationStats:
        counts = Counter(status for (status,) in self.db.query(Feedback.moderation_status).all())
        return ModerationStats(
            total=sum(counts.values()),
            pending=counts.get(ModerationStatus.PENDING.value, 0),
            flagged=counts.get(ModerationStatus.FLAGGED.value, 0),
            approved=counts.get(ModerationStatus.APPROVED.value, 0),
            rejected=counts.get(ModerationStatus.REJECTED.value, 0),
        )
