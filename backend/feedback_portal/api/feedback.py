"""Integration API for feedback: list, analytics, submit, read and triage."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from feedback_portal.database import get_db
from feedback_portal.schemas.common import (
    Envelope,
    FeedbackStatus,
    MessageResponse,
    PageMeta,
    PagedEnvelope,
    Urgency,
)
from feedback_portal.schemas.feedback import (
    Analytics,
    FeedbackEntry,
    FeedbackPatch,
    FeedbackSubmission,
    SubmissionResult,
)
from feedback_portal.services import feedback_service
from feedback_portal.services.feedback_repository import FeedbackRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
def list_feedback(
    type: str = Query("list", pattern="^(list|analytics)$"),
    category: str | None = None,
    status: FeedbackStatus | None = None,
    urgency: Urgency | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    repo = FeedbackRepository(db)
    if type == "analytics":
        return Envelope[Analytics](data=repo.get_statistics())

    items, total = repo.list_all(
        status=status.value if status else None,
        category=category,
        urgency=urgency.value if urgency else None,
        limit=limit,
        offset=offset,
    )
    return PagedEnvelope[FeedbackEntry](
        data=[FeedbackEntry.from_feedback(f, include_responses=False) for f in items],
        meta=PageMeta(total=total, limit=limit, offset=offset, has_more=offset + limit < total),
    )


@router.post("", status_code=201)
async def submit_feedback(payload: FeedbackSubmission, db: Session = Depends(get_db)):
    try:
        result = await feedback_service.submit_feedback(db, payload)
    except feedback_service.InvalidQuestionResponse as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return Envelope[SubmissionResult](data=result)


@router.get("/{feedback_id}")
def get_feedback(feedback_id: str, db: Session = Depends(get_db)):
    feedback = FeedbackRepository(db).get_by_id(feedback_id)
    if feedback is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return Envelope[FeedbackEntry](data=FeedbackEntry.from_feedback(feedback))


@router.patch("/{feedback_id}", response_model=MessageResponse)
async def patch_feedback(feedback_id: str, payload: FeedbackPatch, db: Session = Depends(get_db)):
    """Apply one triage action: status, clarification, note or moderation."""
    if payload.action == "update_status" and payload.status:
        found = await feedback_service.update_status(db, feedback_id, payload.status)
        message = "Status updated"
    elif payload.action == "request_clarification" and payload.question and payload.question.strip():
        try:
            found = await feedback_service.request_clarification(db, feedback_id, payload.question)
        except feedback_service.FollowUpNotAllowed as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        message = "Clarification requested"
    elif payload.action == "add_note" and payload.note and payload.note.strip():
        found = feedback_service.add_note(db, feedback_id, payload.note)
        message = "Note added"
    elif payload.action == "update_moderation" and payload.moderation_status:
        found = await feedback_service.moderate(db, feedback_id, payload.moderation_status, payload.reason)
        message = "Moderation status updated"
    else:
        raise HTTPException(status_code=400, detail="Invalid action")

    if found is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return MessageResponse(message=message)
