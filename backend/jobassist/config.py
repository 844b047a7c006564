"""Application configuration. All sensitive config from .env."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """App settings from environment."""

    # Database - default SQLite for easy local dev; use DATABASE_URL for PostgreSQL
    database_url: str = "sqlite:///./jobassist.db"

    # SQLAlchemy pooling (Postgres only)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout_s: int = 30
    db_pool_recycle_s: int = 1800

    # SQLite concurrency tuning (used when DATABASE_URL starts with sqlite://)
    sqlite_busy_timeout_ms: int = 5000

    # AI - any OpenAI-compatible endpoint (set OPENAI_BASE_URL for Gemini's compatibility API)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    openai_temperature: float = 0.2
    ai_timeout_s: float = 60.0
    # Body characters sent per message in the batch classification prompt
    classification_body_chars: int = 1500

    # Mailbox: auto picks the live Gmail gateway when Google OAuth client credentials are set
    mailbox_mode: str = "auto"  # auto, live, sample
    google_client_id: str = ""
    google_client_secret: str = ""
    # e.g. http://localhost:8000/api/gmail/callback
    gmail_oauth_redirect_uri: Optional[str] = None
    gmail_query: str = "in:inbox"
    gmail_max_results: int = 20
    gmail_fetch_workers: int = 5

    # AI usage ledger retention sweep
    ai_usage_retention_days: int = 90

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    frontend_url: str = "http://localhost:5173"

    # Redis (Celery broker)
    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: Optional[str] = None  # defaults to redis_url if not set

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url

    @property
    def gmail_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


settings = Settings()
