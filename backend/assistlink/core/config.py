"""
Application configuration using Pydantic Settings.
"""

from typing import List
from pydantic import RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="allow"
    )

    # Environment
    ENVIRONMENT: str = "development"
    SECRET_KEY: str
    API_V1_PREFIX: str = "/api/v1"

    # Database (postgresql:// is upgraded to asyncpg, sqlite+aiosqlite:// is accepted for tests)
    DATABASE_URL: str

    # Redis
    REDIS_URL: RedisDsn
    REDIS_CACHE_TTL: int = 3600  # 1 hour default

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # AI responder (Gemini generateContent)
    AI_RESPONDER_ENABLED: bool = True
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    AI_RESPONDER_TIMEOUT: float = 8.0  # seconds, covers retries
    AI_RESPONDER_CACHE_TTL: int = 900  # seconds
    AI_QUOTA_COOLDOWN_SECONDS: int = 300

    # Rate limiting
    DEFAULT_RATE_LIMIT: str = "100/minute"
    INTAKE_RATE_LIMIT: str = "20/minute"

    # Observability
    LOG_LEVEL: str = "INFO"

    # Email/Notifications
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SLACK_WEBHOOK_URL: str = ""

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v


settings = Settings()
