"""NotificationSetting model: one row per outbound channel type."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from feedback_portal.database import Base


class NotificationSetting(Base):
    __tablename__ = "notification_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    notification_type: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)  # email | slack | telegram | webhook
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Channel-specific payload; secret fields are Fernet-encrypted
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    notify_on_new_feedback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_on_clarification_response: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_daily_digest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<NotificationSetting {self.notification_type} enabled={self.is_enabled}>"
