"""Configuration repository: categories, tags, questions, branding and channels.

Usage:
    from feedback_portal.services.config_repository import ConfigRepository
    repo = ConfigRepository(db)
    repo.list_categories(active_only=True)
    repo.create_category(CategoryCreate(name="Work Environment", label="Work Environment"))
    repo.upsert_notification_setting("telegram", NotificationSettingUpdate(...))

Notification channel secrets are Fernet-encrypted before they reach the
``config`` column and are only decrypted for dispatch or masked for display.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from feedback_portal.models import BrandingSettings, Category, NotificationSetting, Question, Tag
from feedback_portal.schemas.common import CHOICE_QUESTION_TYPES, NotificationType, QuestionType
from feedback_portal.schemas.configuration import (
    BrandingUpdate,
    CategoryCreate,
    CategoryUpdate,
    NotificationSettingOut,
    NotificationSettingUpdate,
    QuestionCreate,
    QuestionUpdate,
    TagCreate,
    TagUpdate,
)
from feedback_portal.schemas.notification import (
    SECRET_FIELDS,
    ChannelConfig,
    InvalidChannelConfig,
    decode_channel_config,
)
from feedback_portal.services.encryption_service import (
    decrypt_value,
    encrypt_value,
    is_masked,
    mask_secret,
)
from feedback_portal.utils.helpers import slugify

logger = logging.getLogger(__name__)


class DuplicateEntry(ValueError):
    """A category or tag with the same name already exists."""


class InvalidQuestion(ValueError):
    """A question update would leave the question unanswerable."""


def _next_sort_order(db: Session, model) -> int:
    last = db.query(model).order_by(model.sort_order.desc()).first()
    return (last.sort_order or 0) + 1 if last else 0


def _apply(record, patch) -> None:
    for key, value in patch.model_dump(exclude_unset=True).items():
        setattr(record, key, value)


def _check_question(question: Question) -> None:
    if question.question_type in CHOICE_QUESTION_TYPES and not question.options:
        raise InvalidQuestion("options are required for choice questions")
    if question.question_type == QuestionType.RATING.value:
        low, high = question.min_value, question.max_value
        if low is None or high is None or low >= high:
            raise InvalidQuestion("min_value must be lower than max_value")


class ConfigRepository:
    """CRUD over the reference-data tables."""

    def __init__(self, db: Session):
        self.db = db

    def _save(self, record) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(record)

    # ── Categories ─────────────────────────────────────────────────────

    def list_categories(self, active_only: bool = False) -> list[Category]:
        q = self.db.query(Category)
        if active_only:
            q = q.filter(Category.is_active == True)  # noqa: E712
        return q.order_by(Category.sort_order, Category.label).all()

    def get_category(self, category_id: str) -> Category | None:
        return self.db.get(Category, category_id)

    def get_category_by_name(self, name: str) -> Category | None:
        return self.db.query(Category).filter(Category.name == name).first()

    def create_category(self, data: CategoryCreate) -> Category:
        name = slugify(data.name)
        if self.get_category_by_name(name):
            raise DuplicateEntry(f"Category '{name}' already exists")
        category = Category(
            name=name,
            label=data.label,
            description=data.description,
            color=data.color or "#6b7280",
            icon=data.icon or "folder",
            sort_order=_next_sort_order(self.db, Category),
            is_active=True,
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        logger.info("Created category %s", category.name)
        return category

    def update_category(self, category_id: str, patch: CategoryUpdate) -> Category | None:
        category = self.get_category(category_id)
        if category is None:
            return None
        _apply(category, patch)
        self._save(category)
        return category

    def delete_category(self, category_id: str) -> bool:
        category = self.get_category(category_id)
        if category is None:
            return False
        self.db.delete(category)
        self.db.commit()
        logger.info("Deleted category %s", category.name)
        return True

    # ── Tags ───────────────────────────────────────────────────────────

    def list_tags(self, active_only: bool = False) -> list[Tag]:
        q = self.db.query(Tag)
        if active_only:
            q = q.filter(Tag.is_active == True)  # noqa: E712
        return q.order_by(Tag.sort_order, Tag.name).all()

    def get_tag(self, tag_id: str) -> Tag | None:
        return self.db.get(Tag, tag_id)

    def get_tags_by_names(self, names: list[str], active_only: bool = True) -> list[Tag]:
        if not names:
            return []
        q = self.db.query(Tag).filter(Tag.name.in_(names))
        if active_only:
            q = q.filter(Tag.is_active == True)  # noqa: E712
        return q.order_by(Tag.sort_order).all()

    def create_tag(self, data: TagCreate) -> Tag:
        name = data.name.strip()
        if self.db.query(Tag).filter(Tag.name == name).first():
            raise DuplicateEntry(f"Tag '{name}' already exists")
        tag = Tag(
            name=name,
            color=data.color or "#3b82f6",
            sort_order=_next_sort_order(self.db, Tag),
            is_active=True,
        )
        self.db.add(tag)
        self.db.commit()
        self.db.refresh(tag)
        return tag

    def update_tag(self, tag_id: str, patch: TagUpdate) -> Tag | None:
        tag = self.get_tag(tag_id)
        if tag is None:
            return None
        if patch.name is not None and patch.name != tag.name:
            clash = self.db.query(Tag).filter(Tag.name == patch.name).first()
            if clash:
                raise DuplicateEntry(f"Tag '{patch.name}' already exists")
        _apply(tag, patch)
        self._save(tag)
        return tag

    def delete_tag(self, tag_id: str) -> bool:
        tag = self.get_tag(tag_id)
        if tag is None:
            return False
        self.db.delete(tag)
        self.db.commit()
        return True

    # ── Questions ──────────────────────────────────────────────────────

    def list_questions(self, active_only: bool = False) -> list[Question]:
        q = self.db.query(Question)
        if active_only:
            q = q.filter(Question.is_active == True)  # noqa: E712
        return q.order_by(Question.sort_order, Question.created_at).all()

    def get_question(self, question_id: str) -> Question | None:
        return self.db.get(Question, question_id)

    def create_question(self, data: QuestionCreate) -> Question:
        question = Question(
            question_type=data.question_type.value,
            question_text=data.question_text,
            description=data.description,
            options=data.options,
            is_required=data.is_required,
            min_value=data.min_value,
            max_value=data.max_value,
            sort_order=_next_sort_order(self.db, Question),
            is_active=True,
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def update_question(self, question_id: str, patch: QuestionUpdate) -> Question | None:
        question = self.get_question(question_id)
        if question is None:
            return None
        _apply(question, patch)
        try:
            _check_question(question)
        except InvalidQuestion:
            self.db.rollback()
            raise
        self._save(question)
        return question

    def delete_question(self, question_id: str) -> bool:
        question = self.get_question(question_id)
        if question is None:
            return False
        self.db.delete(question)
        self.db.commit()
        return True

    # ── Branding (single row) ──────────────────────────────────────────

    def get_branding(self) -> BrandingSettings | None:
        return self.db.query(BrandingSettings).first()

    def upsert_branding(self, patch: BrandingUpdate) -> BrandingSettings:
        branding = self.get_branding()
        if branding is None:
            branding = BrandingSettings()
            self.db.add(branding)
        _apply(branding, patch)
        self._save(branding)
        return branding

    # ── Notification channels ──────────────────────────────────────────

    def list_notification_settings(self) -> list[NotificationSetting]:
        return self.db.query(NotificationSetting).order_by(NotificationSetting.notification_type).all()

    def list_enabled_channels(self) -> list[NotificationSetting]:
        return (
            self.db.query(NotificationSetting)
            .filter(NotificationSetting.is_enabled == True)  # noqa: E712
            .all()
        )

    def get_notification_setting(self, notification_type: str) -> NotificationSetting | None:
        return (
            self.db.query(NotificationSetting)
            .filter(NotificationSetting.notification_type == notification_type)
            .first()
        )

    def ensure_channels(self) -> int:
        """Create a disabled row for every channel type that has none.

        Returns the number of rows created.
        """
        existing = {s.notification_type for s in self.list_notification_settings()}
        created = 0
        for channel in NotificationType:
            if channel.value not in existing:
                self.db.add(NotificationSetting(notification_type=channel.value, is_enabled=False, config={}))
                created += 1
        if created:
            self.db.commit()
            logger.info("Created %d notification channel row(s)", created)
        return created

    def upsert_notification_setting(
        self, notification_type: str, patch: NotificationSettingUpdate,
    ) -> NotificationSetting:
        """Create or update one channel.

        Secret fields in ``patch.config`` are encrypted. A masked value echoed
        back from the admin UI keeps the stored secret. Enabling a channel
        requires a config that decodes for its type.
        """
        setting = self.get_notification_setting(notification_type)
        if setting is None:
            setting = NotificationSetting(notification_type=notification_type, is_enabled=False, config={})
            self.db.add(setting)

        values = patch.model_dump(exclude_unset=True)
        new_config = values.pop("config", None)
        if new_config is not None:
            setting.config = self._merge_config(notification_type, setting.config or {}, new_config)
        for key, value in values.items():
            setattr(setting, key, value)

        if setting.is_enabled:
            try:
                decode_channel_config(notification_type, self.decrypt_config(notification_type, setting.config))
            except InvalidChannelConfig:
                self.db.rollback()
                raise

        self.db.commit()
        self.db.refresh(setting)
        logger.info("Updated %s notification settings (enabled=%s)", notification_type, setting.is_enabled)
        return setting

    def _merge_config(self, notification_type: str, stored: dict, incoming: dict) -> dict:
        secrets = SECRET_FIELDS.get(notification_type, ())
        merged: dict[str, Any] = {}
        for key, value in incoming.items():
            if key in secrets:
                if isinstance(value, str) and is_masked(value):
                    if key in stored:
                        merged[key] = stored[key]
                    continue
                merged[key] = encrypt_value(str(value)) if value else value
            else:
                merged[key] = value
        return merged

    @staticmethod
    def decrypt_config(notification_type: str, config: dict | None) -> dict:
        """Return ``config`` with its secret fields decrypted."""
        out = dict(config or {})
        for key in SECRET_FIELDS.get(notification_type, ()):
            if out.get(key):
                try:
                    out[key] = decrypt_value(out[key])
                except ValueError:
                    logger.error("Could not decrypt %s.%s; treating as unset", notification_type, key)
                    out.pop(key)
        return out

    def channel_config(self, setting: NotificationSetting) -> ChannelConfig:
        """Decode a stored channel row into its typed config."""
        return decode_channel_config(
            setting.notification_type, self.decrypt_config(setting.notification_type, setting.config),
        )

    def masked_setting(self, setting: NotificationSetting) -> NotificationSettingOut:
        """Admin view of a channel row with every secret masked."""
        plain = self.decrypt_config(setting.notification_type, setting.config)
        for key in SECRET_FIELDS.get(setting.notification_type, ()):
            if plain.get(key):
                plain[key] = mask_secret(str(plain[key]))
        return NotificationSettingOut(
            id=setting.id,
            notification_type=setting.notification_type,
            is_enabled=setting.is_enabled,
            config=plain,
            notify_on_new_feedback=setting.notify_on_new_feedback,
            notify_on_urgent=setting.notify_on_urgent,
            notify_on_clarification_response=setting.notify_on_clarification_response,
            notify_daily_digest=setting.notify_daily_digest,
            updated_at=setting.updated_at,
        )
