"""Tests for reference data, branding and notification channel settings."""
import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from feedback_portal.models import BrandingSettings
from feedback_portal.schemas.configuration import (
    BrandingUpdate,
    CategoryCreate,
    CategoryUpdate,
    NotificationSettingUpdate,
    QuestionCreate,
    QuestionUpdate,
    TagCreate,
    TagUpdate,
)
from feedback_portal.schemas.notification import InvalidChannelConfig, TelegramConfig
from feedback_portal.services.config_repository import ConfigRepository, DuplicateEntry, InvalidQuestion
from feedback_portal.services.encryption_service import decrypt_value

BOT_TOKEN = "123456789:AAFakeTokenForTests"


@pytest.fixture
def repo(db_session):
    return ConfigRepository(db_session)


class TestCategories:
    def test_create_slugs_name_and_applies_defaults(self, repo):
        category = repo.create_category(CategoryCreate(name="Work Environment", label="Work Environment"))
        assert category.name == "work-environment"
        assert category.color == "#6b7280"
        assert category.icon == "folder"
        assert category.is_active is True

    def test_sort_order_increments(self, repo):
        first = repo.create_category(CategoryCreate(name="a", label="A"))
        second = repo.create_category(CategoryCreate(name="b", label="B"))
        assert second.sort_order == first.sort_order + 1

    def test_duplicate_name(self, repo):
        repo.create_category(CategoryCreate(name="Facilities", label="Facilities"))
        with pytest.raises(DuplicateEntry):
            repo.create_category(CategoryCreate(name="facilities", label="Other"))

    def test_partial_update_and_active_filter(self, repo):
        category = repo.create_category(
            CategoryCreate(name="hr", label="HR", description="People matters")
        )
        updated = repo.update_category(category.id, CategoryUpdate(label="Human Resources", is_active=False))

        assert updated.label == "Human Resources"
        assert updated.description == "People matters"
        assert repo.list_categories(active_only=True) == []
        assert len(repo.list_categories()) == 1

    def test_failed_commit_rolls_back(self, repo):
        category = repo.create_category(CategoryCreate(name="hr", label="HR"))
        # Bypasses the null check the API applies
        patch = CategoryUpdate.model_construct(_fields_set={"is_active"}, is_active=None)

        with pytest.raises(IntegrityError):
            repo.update_category(category.id, patch)

        assert repo.get_category(category.id).is_active is True
        assert repo.update_category(category.id, CategoryUpdate(label="People")).label == "People"

    def test_explicit_null_rejected_by_schema(self):
        with pytest.raises(ValidationError):
            CategoryUpdate(is_active=None)
        assert CategoryUpdate(description=None).model_dump(exclude_unset=True) == {"description": None}

    def test_missing(self, repo):
        assert repo.update_category("missing", CategoryUpdate(label="x")) is None
        assert repo.delete_category("missing") is False


class TestTags:
    def test_create_and_duplicate(self, repo):
        tag = repo.create_tag(TagCreate(name="safety"))
        assert tag.color == "#3b82f6"
        with pytest.raises(DuplicateEntry):
            repo.create_tag(TagCreate(name="safety"))

    def test_rename_clash(self, repo):
        repo.create_tag(TagCreate(name="safety"))
        other = repo.create_tag(TagCreate(name="parking"))
        with pytest.raises(DuplicateEntry):
            repo.update_tag(other.id, TagUpdate(name="safety"))

    def test_lookup_by_names(self, repo):
        safety = repo.create_tag(TagCreate(name="safety"))
        repo.create_tag(TagCreate(name="parking"))
        repo.update_tag(safety.id, TagUpdate(is_active=False))

        assert [t.name for t in repo.get_tags_by_names(["safety", "parking", "nope"])] == ["parking"]
        assert len(repo.get_tags_by_names(["safety", "parking"], active_only=False)) == 2
        assert repo.get_tags_by_names([]) == []


class TestQuestions:
    def test_update_rechecks_rating_bounds(self, repo):
        question = repo.create_question(QuestionCreate(question_text="Rate us", question_type="rating"))

        with pytest.raises(InvalidQuestion):
            repo.update_question(question.id, QuestionUpdate(max_value=1))

        assert repo.get_question(question.id).max_value == 5
        assert repo.update_question(question.id, QuestionUpdate(max_value=10)).max_value == 10

    def test_update_keeps_choice_options(self, repo):
        question = repo.create_question(
            QuestionCreate(question_text="Shift?", question_type="select", options=["Day", "Night"])
        )

        with pytest.raises(InvalidQuestion):
            repo.update_question(question.id, QuestionUpdate(options=[]))

        assert repo.get_question(question.id).options == ["Day", "Night"]

    def test_text_question_needs_no_options(self, repo):
        question = repo.create_question(QuestionCreate(question_text="Anything else?", question_type="text"))
        updated = repo.update_question(question.id, QuestionUpdate(question_text="Other comments?"))
        assert updated.question_text == "Other comments?"


class TestBranding:
    def test_single_row_upsert(self, repo, db_session):
        assert repo.get_branding() is None
        repo.upsert_branding(BrandingUpdate(site_name="Acme Voice"))
        branding = repo.upsert_branding(BrandingUpdate(primary_color="#000000"))

        assert db_session.query(BrandingSettings).count() == 1
        assert branding.site_name == "Acme Voice"
        assert branding.primary_color == "#000000"
        assert branding.accent_color == "#f59e0b"


class TestNotificationSettings:
    def test_ensure_channels_is_idempotent(self, repo):
        assert repo.ensure_channels() == 4
        assert repo.ensure_channels() == 0
        settings = repo.list_notification_settings()
        assert {s.notification_type for s in settings} == {"email", "slack", "telegram", "webhook"}
        assert not any(s.is_enabled for s in settings)

    def test_secrets_encrypted_at_rest(self, repo):
        setting = repo.upsert_notification_setting(
            "telegram",
            NotificationSettingUpdate(is_enabled=True, config={"bot_token": BOT_TOKEN, "chat_id": "42"}),
        )

        stored = setting.config["bot_token"]
        assert stored != BOT_TOKEN
        assert decrypt_value(stored) == BOT_TOKEN
        assert setting.config["chat_id"] == "42"

        config = repo.channel_config(setting)
        assert isinstance(config, TelegramConfig)
        assert config.bot_token == BOT_TOKEN

    def test_masked_view_and_masked_echo(self, repo):
        repo.upsert_notification_setting(
            "telegram",
            NotificationSettingUpdate(is_enabled=True, config={"bot_token": BOT_TOKEN, "chat_id": "42"}),
        )
        masked = repo.masked_setting(repo.get_notification_setting("telegram"))
        token = masked.config["bot_token"]
        assert token != BOT_TOKEN
        assert token.startswith("•")
        assert token.endswith(BOT_TOKEN[-4:])

        # Saving the form back unchanged must not overwrite the real secret
        setting = repo.upsert_notification_setting(
            "telegram",
            NotificationSettingUpdate(config={"bot_token": token, "chat_id": "43"}),
        )
        assert decrypt_value(setting.config["bot_token"]) == BOT_TOKEN
        assert setting.config["chat_id"] == "43"

    def test_enabling_requires_valid_config(self, repo):
        repo.ensure_channels()
        with pytest.raises(InvalidChannelConfig):
            repo.upsert_notification_setting("slack", NotificationSettingUpdate(is_enabled=True, config={}))
        assert repo.get_notification_setting("slack").is_enabled is False

    def test_disabled_channel_may_be_incomplete(self, repo):
        setting = repo.upsert_notification_setting(
            "webhook", NotificationSettingUpdate(config={"url": ""}, notify_on_urgent=False),
        )
        assert setting.is_enabled is False
        assert setting.notify_on_urgent is False

    def test_undecryptable_secret_treated_as_unset(self, repo):
        plain = ConfigRepository.decrypt_config("slack", {"webhook_url": "not-a-token"})
        assert "webhook_url" not in plain
