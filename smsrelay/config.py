from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./smsrelay.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    ENVIRONMENT: Literal["development", "test", "production"] = "development"

    # Which identity messages are scoped to: anonymous cookie or signed-in account
    OWNER_SCOPE: Literal["session", "account"] = "session"

    # SMS gateway
    SMS_GATEWAY_MODE: Literal["stub", "live"] = "stub"
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_PHONE_NUMBER: Optional[str] = None

    # Cross-origin access; unset or "*" allows any origin without credentials
    FRONTEND_ORIGIN: Optional[str] = None

    # Signing key for the authenticated session cookie
    SESSION_SECRET: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@dataclass(frozen=True)
class GatewayConfig:
    """
    Credentials for the SMS gateway.

    Built once at startup and handed to the adapter, so nothing below the
    app factory reads the environment.
    """
    mode: str = "stub"
    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    from_number: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        return cls(
            mode=settings.SMS_GATEWAY_MODE,
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
