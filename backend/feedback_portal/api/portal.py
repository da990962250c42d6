"""Public submission portal: form config, submit, track and answer follow-ups.

No API key here. The access code in the request body is the only credential,
and every miss is the same 404 so codes and clarification ids cannot be
told apart by the response.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from feedback_portal.database import get_db
from feedback_portal.schemas.common import Envelope
from feedback_portal.schemas.configuration import (
    BrandingOut,
    CategoryOut,
    FormConfig,
    QuestionOut,
    TagOut,
)
from feedback_portal.schemas.feedback import (
    ClarificationAnswer,
    ClarificationOut,
    FeedbackSubmission,
    SubmissionResult,
    TrackedFeedback,
    TrackRequest,
)
from feedback_portal.services import feedback_service
from feedback_portal.services.config_repository import ConfigRepository

router = APIRouter()


@router.get("/form", response_model=Envelope[FormConfig])
def get_form(db: Session = Depends(get_db)):
    """Everything the submission wizard needs to render."""
    repo = ConfigRepository(db)
    branding = repo.get_branding()
    return Envelope[FormConfig](
        data=FormConfig(
            categories=[CategoryOut.model_validate(c) for c in repo.list_categories(active_only=True)],
            tags=[TagOut.model_validate(t) for t in repo.list_tags(active_only=True)],
            questions=[QuestionOut.model_validate(q) for q in repo.list_questions(active_only=True)],
            branding=BrandingOut.model_validate(branding) if branding else BrandingOut(),
        )
    )


@router.post("/submit", response_model=Envelope[SubmissionResult], status_code=201)
async def submit(payload: FeedbackSubmission, db: Session = Depends(get_db)):
    try:
        result = await feedback_service.submit_feedback(db, payload)
    except feedback_service.InvalidQuestionResponse as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return Envelope[SubmissionResult](data=result)


@router.post("/track", response_model=Envelope[TrackedFeedback])
def track(payload: TrackRequest, db: Session = Depends(get_db)):
    feedback = feedback_service.track_feedback(db, payload.access_code)
    if feedback is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return Envelope[TrackedFeedback](data=TrackedFeedback.from_feedback(feedback))


@router.post("/clarifications/{clarification_id}/respond", response_model=Envelope[ClarificationOut])
async def respond(clarification_id: str, payload: ClarificationAnswer, db: Session = Depends(get_db)):
    if not payload.response.strip():
        raise HTTPException(status_code=400, detail="Missing required field: response")
    try:
        clarification = await feedback_service.respond_to_clarification(
            db, payload.access_code, clarification_id, payload.response,
        )
    except feedback_service.ClarificationAlreadyAnswered as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if clarification is None:
        raise HTTPException(status_code=404, detail="Clarification not found")
    return Envelope[ClarificationOut](data=ClarificationOut.model_validate(clarification))
