"""
Runtime configuration helpers for the LoopIn API.

Loads DATABASE_URL and the remaining settings from the environment, falling
back to the .env file located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import EmailStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required field; must come from the environment or .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="LoopIn API", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")
    public_base_url: str = Field(default="http://localhost:3000", alias="PUBLIC_BASE_URL")

    # Local stand-in backend; connectivity checks always succeed.
    emulator_mode: bool = Field(default=False, alias="LOOPIN_EMULATOR")

    # Retry / connectivity
    retry_max_attempts: int = Field(default=3, ge=0, alias="RETRY_MAX_ATTEMPTS")
    retry_delay_ms: int = Field(default=1000, ge=0, alias="RETRY_DELAY_MS")
    connectivity_cache_seconds: float = Field(default=5.0, ge=0, alias="CONNECTIVITY_CACHE_SECONDS")
    connectivity_poll_seconds: float = Field(default=15.0, gt=0, alias="CONNECTIVITY_POLL_SECONDS")
    online_wait_timeout_seconds: float = Field(default=30.0, gt=0, alias="ONLINE_WAIT_TIMEOUT_SECONDS")
    offline_queue_path: Path = Field(default=BASE_DIR / ".loopin" / "offline_queue.json", alias="OFFLINE_QUEUE_PATH")

    # S3-compatible blob storage
    storage_bucket: str | None = Field(default=None, alias="STORAGE_BUCKET")
    storage_region: str | None = Field(default=None, alias="STORAGE_REGION")
    storage_endpoint_url: str | None = Field(default=None, alias="STORAGE_ENDPOINT_URL")
    storage_public_base_url: str | None = Field(default=None, alias="STORAGE_PUBLIC_BASE_URL")

    # Transactional email (SMTP first, Mailgun as fallback)
    email_host: str | None = Field(default=None, alias="EMAIL_HOST")
    email_port: int = Field(default=587, alias="EMAIL_PORT")
    email_username: str | None = Field(default=None, alias="EMAIL_USERNAME")
    email_from_address: EmailStr | None = Field(default=None, alias="EMAIL_FROM_ADDRESS")
    email_use_tls: bool = Field(default=True, alias="EMAIL_USE_TLS")
    mailgun_api_key: str | None = Field(default=None, alias="MAILGUN_API_KEY")
    mailgun_domain: str | None = Field(default=None, alias="MAILGUN_DOMAIN")
    admin_email: EmailStr | None = Field(default=None, alias="ADMIN_EMAIL")
    signup_emails_enabled: bool = Field(default=True, alias="SIGNUP_EMAILS_ENABLED")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
