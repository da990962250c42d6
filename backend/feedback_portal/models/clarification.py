"""Clarification model: admin follow-up question answered via the access code."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from feedback_portal.database import Base


class Clarification(Base):
    __tablename__ = "clarifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    feedback_id: Mapped[str] = mapped_column(String(36), ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    feedback = relationship("Feedback", back_populates="clarifications")

    __table_args__ = (
        Index("ix_clarifications_feedback_id", "feedback_id"),
    )

    @property
    def is_answered(self) -> bool:
        return self.response is not None

    def __repr__(self) -> str:
        return f"<Clarification {self.id[:8]} answered={self.is_answered}>"
