"""Configuration for the quotedesk service."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="QUOTEDESK_", case_sensitive=False)

    app_name: str = "Quotedesk"
    environment: str = Field(default="development", alias="env")
    version: str = "1.0.0"

    database_url: str = Field(default="sqlite+aiosqlite:///./quotedesk.db")
    redis_url: str | None = Field(default=None)

    site_url: str = Field(default="http://localhost:3000")
    email_api_url: str = Field(default="https://api.resend.com")
    email_api_key: str | None = Field(default=None)
    email_sender: str = Field(default="quotes@meridianluxury.travel")
    request_timeout_seconds: float = Field(default=10.0)

    # Identities allowed to manage quotes, bookings and site content.
    operator_emails: set[str] = Field(default_factory=set)
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    access_token_minutes: int = Field(default=60, ge=5)

    quote_token_ttl_days: int = Field(default=14, ge=1, le=90)
    token_storage_fail_closed: bool = Field(default=False)
    enforce_status_transitions: bool = Field(default=False)

    booking_deposit_rate: Decimal = Field(default=Decimal("0.25"), gt=0, le=1)
    content_cache_ttl_seconds: int = Field(default=300, ge=1)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    @field_validator("operator_emails")
    @classmethod
    def _normalise_operators(cls, value: set[str]) -> set[str]:
        return {email.strip().lower() for email in value if email.strip()}

    @field_validator("site_url", "email_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
