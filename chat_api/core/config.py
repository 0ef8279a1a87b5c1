"""
core/config.py
--------------
Centralised settings management using pydantic-settings.
All configuration is loaded from environment variables / .env file.
This is the single source of truth for application configuration.
"""

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App ──────────────────────────────────────────────────────────────
    APP_NAME: str = "Chat API"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Security ─────────────────────────────────────────────────────────
    # No default: the service refuses to start without a signing secret.
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    JWT_ISSUER: str = "realtime-chat-app"
    JWT_AUDIENCE: str = "chat-users"
    BCRYPT_ROUNDS: int = 12

    # ── Database ─────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./chat.db"
    DB_QUERY_TIMEOUT: float = 30.0

    # ── Rate limiting ────────────────────────────────────────────────────
    CHANGE_PASSWORD_RATE_LIMIT: int = 5
    CHANGE_PASSWORD_RATE_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_ENTRIES: int = 10_000

    # ── CORS ─────────────────────────────────────────────────────────────
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    @field_validator("SECRET_KEY")
    @classmethod
    def check_secret(cls, v: str) -> str:
        if len(v.strip()) < 16:
            raise ValueError("SECRET_KEY must be set to at least 16 characters")
        return v

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v):
        if isinstance(v, str):
            import json
            return json.loads(v)
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings factory.
    Use this everywhere to avoid re-reading .env on every call.
    """
    return Settings()


settings = get_settings()
