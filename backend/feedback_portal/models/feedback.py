"""Feedback model: the anonymous submission and everything triage adds to it.

The submitter is identified only by ``access_code_hash``; the plaintext access
code is handed out once at submission time and never stored.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, Integer, Boolean, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from feedback_portal.database import Base


class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    access_code_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    category_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    feedback_type: Mapped[str] = mapped_column(String(20), nullable=False)  # suggestion | concern | praise | question
    urgency: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")  # low | medium | high | critical
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    impact: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_solution: Mapped[str | None] = mapped_column(Text, nullable=True)
    allow_follow_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="received")  # received | in-progress | resolved
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Moderation
    moderation_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending | approved | flagged | rejected
    moderation_flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    moderation_score: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    keywords: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # AI analysis (advisory only)
    ai_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ai_sentiment: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ai_priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_keywords: Mapped[list | None] = mapped_column(JSON, nullable=True)
    ai_category_suggestion: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ai_urgency_suggestion: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ai_action_items: Mapped[list | None] = mapped_column(JSON, nullable=True)

    admin_notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # ["[iso] note", ...]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    category = relationship("Category", back_populates="feedback")
    tag_links = relationship(
        "FeedbackTag", back_populates="feedback", cascade="all, delete-orphan", passive_deletes=True
    )
    tags = relationship("Tag", secondary="feedback_tags", viewonly=True, order_by="Tag.sort_order")
    responses = relationship(
        "FeedbackResponse", back_populates="feedback", cascade="all, delete-orphan", passive_deletes=True
    )
    clarifications = relationship(
        "Clarification",
        back_populates="feedback",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Clarification.created_at",
    )

    __table_args__ = (
        Index("ix_feedback_status", "status"),
        Index("ix_feedback_moderation_status", "moderation_status"),
        Index("ix_feedback_urgency", "urgency"),
        Index("ix_feedback_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Feedback {self.id[:8]} ({self.status})>"
