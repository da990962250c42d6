"""FeedbackResponse model: answer to one configurable question on one submission.

Exactly one of the value columns is filled, chosen by the question type:
text/textarea -> ``response_value``, rating -> ``response_number``,
multiple_choice/select -> ``response_option``.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from feedback_portal.database import Base


class FeedbackResponse(Base):
    __tablename__ = "feedback_responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    feedback_id: Mapped[str] = mapped_column(String(36), ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    response_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_option: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Relationships
    feedback = relationship("Feedback", back_populates="responses")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("feedback_id", "question_id", name="uq_feedback_responses_feedback_question"),
    )

    @property
    def answer(self) -> str | int | None:
        if self.response_number is not None:
            return self.response_number
        if self.response_option is not None:
            return self.response_option
        return self.response_value
