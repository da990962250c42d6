"""Application configuration using Pydantic Settings."""
from pathlib import Path
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Application
    APP_NAME: str = "Anonymous Feedback Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Public URL of the portal, used for dashboard links in notifications
    APP_URL: str = ""
    TRACKING_PATH: str = "/track"

    # Database (Postgres in production, e.g. postgresql+psycopg2://...)
    DATABASE_URL: str = "sqlite:///./data/feedback.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # API access. Unset means the JSON API is open (development only).
    FEEDBACK_API_KEY: str | None = None

    # Derives the Fernet key used for notification channel secrets
    SECRET_KEY: str = "change-me-in-production-use-a-strong-random-secret-key"

    # AI categorization (best-effort)
    AI_PROVIDER: str = "gemini"             # gemini | openai
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 8.0
    AI_TEMPERATURE: float = 0.2

    # Outbound notifications
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def ai_api_key(self) -> str:
        if self.AI_PROVIDER == "openai":
            return self.OPENAI_API_KEY or ""
        return self.GEMINI_API_KEY or ""

    @property
    def ai_model(self) -> str:
        return self.OPENAI_MODEL if self.AI_PROVIDER == "openai" else self.GEMINI_MODEL

    @property
    def sqlite_path(self) -> Path | None:
        if not self.DATABASE_URL.startswith("sqlite:///"):
            return None
        db_path = self.DATABASE_URL.replace("sqlite:///", "")
        if not db_path or db_path == ":memory:":
            return None
        return Path(db_path)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
