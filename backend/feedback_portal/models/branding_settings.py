"""BrandingSettings model: single-row look-and-feel configuration."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from feedback_portal.database import Base


class BrandingSettings(Base):
    __tablename__ = "branding_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    site_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Anonymous Feedback Portal")
    site_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    primary_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#10b981")
    secondary_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6366f1")
    accent_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#f59e0b")
    trust_badge_1_title: Mapped[str] = mapped_column(String(255), nullable=False, default="End-to-End Encryption")
    trust_badge_1_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trust_badge_2_title: Mapped[str] = mapped_column(String(255), nullable=False, default="No IP Tracking")
    trust_badge_2_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trust_badge_3_title: Mapped[str] = mapped_column(String(255), nullable=False, default="Anonymous Follow-ups")
    trust_badge_3_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_css: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
