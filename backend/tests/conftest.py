"""Test configuration and fixtures."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import feedback_portal.models  # noqa: F401  register mappers
from feedback_portal.config import get_settings
from feedback_portal.database import Base, enable_sqlite_foreign_keys, get_db
from feedback_portal.services.encryption_service import reset_cipher
from feedback_portal.services.webhook_registry import webhook_registry


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """No AI provider, no API key and no leftover registrations between tests."""
    for var in ("GEMINI_API_KEY", "OPENAI_API_KEY", "FEEDBACK_API_KEY", "APP_URL"):
        monkeypatch.setenv(var, "")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    get_settings.cache_clear()
    reset_cipher()
    webhook_registry.clear()
    yield
    get_settings.cache_clear()
    reset_cipher()
    webhook_registry.clear()


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def app(db_session):
    from feedback_portal.main import app as fastapi_app

    def _override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # Not used as a context manager, so the lifespan (file DB setup) never runs
    return TestClient(app)


@pytest.fixture
def make_feedback(db_session):
    """Insert a feedback row directly; returns the loaded entity."""
    from feedback_portal.services.access_code import generate_access_code, hash_access_code
    from feedback_portal.services.feedback_repository import FeedbackRepository

    def _make(tag_ids=None, responses=None, **overrides):
        record = {
            "access_code_hash": hash_access_code(generate_access_code()),
            "feedback_type": "suggestion",
            "urgency": "medium",
            "subject": "Break room coffee machine",
            "description": "The coffee machine in the break room has been broken for two weeks.",
            "moderation_status": "approved",
            "moderation_flags": [],
            "moderation_score": 100,
            "keywords": [],
        }
        record.update(overrides)
        return FeedbackRepository(db_session).create(record, tag_ids, responses)

    return _make
