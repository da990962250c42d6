"""FeedbackTag model: many-to-many link between feedback and tags."""
import uuid
from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from feedback_portal.database import Base


class FeedbackTag(Base):
    __tablename__ = "feedback_tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    feedback_id: Mapped[str] = mapped_column(String(36), ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False)
    tag_id: Mapped[str] = mapped_column(String(36), ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    feedback = relationship("Feedback", back_populates="tag_links")
    tag = relationship("Tag")

    __table_args__ = (
        UniqueConstraint("feedback_id", "tag_id", name="uq_feedback_tags_feedback_tag"),
    )
