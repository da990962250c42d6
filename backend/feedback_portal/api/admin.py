"""Admin dashboard API: moderation, triage extras, reference data and settings."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from feedback_portal.database import get_db
from feedback_portal.schemas.common import Envelope, MessageResponse, NotificationType
from feedback_portal.schemas.configuration import (
    BrandingOut,
    BrandingUpdate,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    NotificationSettingOut,
    NotificationSettingUpdate,
    QuestionCreate,
    QuestionOut,
    QuestionUpdate,
    ReportRequest,
    ReportResponse,
    TagCreate,
    TagOut,
    TagUpdate,
    TelegramTestRequest,
    TelegramTestResult,
)
from feedback_portal.schemas.feedback import (
    AdminNoteCreate,
    BulkModerationRequest,
    BulkModerationResult,
    FeedbackEntry,
    ModerationDecision,
    ModerationStats,
    TagAssignment,
)
from feedback_portal.schemas.notification import InvalidChannelConfig
from feedback_portal.services import feedback_service
from feedback_portal.services.config_repository import ConfigRepository, DuplicateEntry, InvalidQuestion
from feedback_portal.services.feedback_repository import FeedbackRepository
from feedback_portal.services.notifications import send_telegram_test

router = APIRouter()
logger = logging.getLogger(__name__)


def _feedback_or_404(feedback) -> Envelope[FeedbackEntry]:
    if feedback is None:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return Envelope[FeedbackEntry](data=FeedbackEntry.from_feedback(feedback))


# ── Moderation ─────────────────────────────────────────────────────────

@router.get("/moderation/queue", response_model=Envelope[list[FeedbackEntry]])
def moderation_queue(db: Session = Depends(get_db)):
    items = FeedbackRepository(db).list_moderation_queue()
    return Envelope[list[FeedbackEntry]](data=[FeedbackEntry.from_feedback(f) for f in items])


@router.get("/moderation/stats", response_model=Envelope[ModerationStats])
def moderation_stats(db: Session = Depends(get_db)):
    return Envelope[ModerationStats](data=FeedbackRepository(db).get_moderation_stats())


@router.post("/moderation/bulk", response_model=Envelope[BulkModerationResult])
async def bulk_moderation(payload: BulkModerationRequest, db: Session = Depends(get_db)):
    """Approve or reject many items; ``success`` is false if any id failed."""
    result = await feedback_service.bulk_moderate(db, payload.ids, payload.status, payload.reason)
    return Envelope[BulkModerationResult](success=not result.failed, data=result)


@router.post("/feedback/{feedback_id}/moderation", response_model=Envelope[FeedbackEntry])
async def moderate_feedback(feedback_id: str, payload: ModerationDecision, db: Session = Depends(get_db)):
    feedback = await feedback_service.moderate(db, feedback_id, payload.status, payload.reason)
    return _feedback_or_404(feedback)


# ── Feedback extras ────────────────────────────────────────────────────

@router.post("/feedback/{feedback_id}/notes", response_model=Envelope[FeedbackEntry])
def add_note(feedback_id: str, payload: AdminNoteCreate, db: Session = Depends(get_db)):
    return _feedback_or_404(feedback_service.add_note(db, feedback_id, payload.note))


@router.put("/feedback/{feedback_id}/tags", response_model=Envelope[FeedbackEntry])
def set_tags(feedback_id: str, payload: TagAssignment, db: Session = Depends(get_db)):
    return _feedback_or_404(feedback_service.set_tags(db, feedback_id, payload.tags))


@router.delete("/feedback/{feedback_id}", response_model=MessageResponse)
def delete_feedback(feedback_id: str, db: Session = Depends(get_db)):
    if not FeedbackRepository(db).delete(feedback_id):
        raise HTTPException(status_code=404, detail="Feedback not found")
    return MessageResponse(message="Feedback deleted")


# ── Categories ─────────────────────────────────────────────────────────

@router.get("/categories", response_model=Envelope[list[CategoryOut]])
def list_categories(db: Session = Depends(get_db)):
    return Envelope[list[CategoryOut]](
        data=[CategoryOut.model_validate(c) for c in ConfigRepository(db).list_categories()]
    )


@router.post("/categories", response_model=Envelope[CategoryOut], status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    try:
        category = ConfigRepository(db).create_category(payload)
    except DuplicateEntry as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return Envelope[CategoryOut](data=CategoryOut.model_validate(category))


@router.patch("/categories/{category_id}", response_model=Envelope[CategoryOut])
def update_category(category_id: str, payload: CategoryUpdate, db: Session = Depends(get_db)):
    category = ConfigRepository(db).update_category(category_id, payload)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return Envelope[CategoryOut](data=CategoryOut.model_validate(category))


@router.delete("/categories/{category_id}", response_model=MessageResponse)
def delete_category(category_id: str, db: Session = Depends(get_db)):
    if not ConfigRepository(db).delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return MessageResponse(message="Category deleted")


# ── Tags ───────────────────────────────────────────────────────────────

@router.get("/tags", response_model=Envelope[list[TagOut]])
def list_tags(db: Session = Depends(get_db)):
    return Envelope[list[TagOut]](data=[TagOut.model_validate(t) for t in ConfigRepository(db).list_tags()])


@router.post("/tags", response_model=Envelope[TagOut], status_code=201)
def create_tag(payload: TagCreate, db: Session = Depends(get_db)):
    try:
        tag = ConfigRepository(db).create_tag(payload)
    except DuplicateEntry as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return Envelope[TagOut](data=TagOut.model_validate(tag))


@router.patch("/tags/{tag_id}", response_model=Envelope[TagOut])
def update_tag(tag_id: str, payload: TagUpdate, db: Session = Depends(get_db)):
    try:
        tag = ConfigRepository(db).update_tag(tag_id, payload)
    except DuplicateEntry as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return Envelope[TagOut](data=TagOut.model_validate(tag))


@router.delete("/tags/{tag_id}", response_model=MessageResponse)
def delete_tag(tag_id: str, db: Session = Depends(get_db)):
    if not ConfigRepository(db).delete_tag(tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")
    return MessageResponse(message="Tag deleted")


# ── Questions ──────────────────────────────────────────────────────────

@router.get("/questions", response_model=Envelope[list[QuestionOut]])
def list_questions(db: Session = Depends(get_db)):
    return Envelope[list[QuestionOut]](
        data=[QuestionOut.model_validate(q) for q in ConfigRepository(db).list_questions()]
    )


@router.post("/questions", response_model=Envelope[QuestionOut], status_code=201)
def create_question(payload: QuestionCreate, db: Session = Depends(get_db)):
    return Envelope[QuestionOut](data=QuestionOut.model_validate(ConfigRepository(db).create_question(payload)))


@router.patch("/questions/{question_id}", response_model=Envelope[QuestionOut])
def update_question(question_id: str, payload: QuestionUpdate, db: Session = Depends(get_db)):
    try:
        question = ConfigRepository(db).update_question(question_id, payload)
    except InvalidQuestion as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return Envelope[QuestionOut](data=QuestionOut.model_validate(question))


@router.delete("/questions/{question_id}", response_model=MessageResponse)
def delete_question(question_id: str, db: Session = Depends(get_db)):
    if not ConfigRepository(db).delete_question(question_id):
        raise HTTPException(status_code=404, detail="Question not found")
    return MessageResponse(message="Question deleted")


# ── Branding ───────────────────────────────────────────────────────────

@router.get("/branding", response_model=Envelope[BrandingOut])
def get_branding(db: Session = Depends(get_db)):
    branding = ConfigRepository(db).get_branding()
    return Envelope[BrandingOut](data=BrandingOut.model_validate(branding) if branding else BrandingOut())


@router.put("/branding", response_model=Envelope[BrandingOut])
def update_branding(payload: BrandingUpdate, db: Session = Depends(get_db)):
    return Envelope[BrandingOut](data=BrandingOut.model_validate(ConfigRepository(db).upsert_branding(payload)))


# ── Notification channels ──────────────────────────────────────────────

@router.get("/notifications", response_model=Envelope[list[NotificationSettingOut]])
def list_notification_settings(db: Session = Depends(get_db)):
    repo = ConfigRepository(db)
    return Envelope[list[NotificationSettingOut]](
        data=[repo.masked_setting(s) for s in repo.list_notification_settings()]
    )


@router.put("/notifications/{notification_type}", response_model=Envelope[NotificationSettingOut])
def update_notification_setting(
    notification_type: NotificationType,
    payload: NotificationSettingUpdate,
    db: Session = Depends(get_db),
):
    repo = ConfigRepository(db)
    try:
        setting = repo.upsert_notification_setting(notification_type.value, payload)
    except InvalidChannelConfig as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return Envelope[NotificationSettingOut](data=repo.masked_setting(setting))


@router.post("/notifications/telegram/test", response_model=TelegramTestResult)
async def test_telegram(payload: TelegramTestRequest):
    return await send_telegram_test(payload.bot_token, payload.chat_id)


# ── Reports ────────────────────────────────────────────────────────────

@router.post("/reports", response_model=ReportResponse)
async def create_report(payload: ReportRequest, db: Session = Depends(get_db)):
    """AI trend report over recent feedback; ``report`` is null when unavailable."""
    return await feedback_service.generate_report(db, payload.status, payload.limit)
