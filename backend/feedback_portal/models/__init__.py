"""SQLAlchemy ORM models package."""
from feedback_portal.models.category import Category
from feedback_portal.models.tag import Tag
from feedback_portal.models.question import Question
from feedback_portal.models.feedback import Feedback
from feedback_portal.models.feedback_tag import FeedbackTag
from feedback_portal.models.feedback_response import FeedbackResponse
from feedback_portal.models.clarification import Clarification
from feedback_portal.models.branding_settings import BrandingSettings
from feedback_portal.models.notification_setting import NotificationSetting

__all__ = [
    "Category",
    "Tag",
    "Question",
    "Feedback",
    "FeedbackTag",
    "FeedbackResponse",
    "Clarification",
    "BrandingSettings",
    "NotificationSetting",
]
