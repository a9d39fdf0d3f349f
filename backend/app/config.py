from __future__ import annotations

import os

APP_VERSION = "0.4.0"

_DEFAULT_SECRET_KEYS = ("change-me-in-production", "dev-secret-key-change-in-production")


def _env_bool(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    PROJECT_NAME: str = "CareCheck"
    API_V1_PREFIX: str = "/api/v1"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "carecheck")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "carecheck")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "carecheck")

    RESET_DB: bool = _env_bool("RESET_DB")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    # Email / SMTP (optional; email reminders are skipped when unset)
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_FROM: str = os.getenv("SMTP_FROM", "noreply@carecheck.local")
    SMTP_TLS: bool = _env_bool("SMTP_TLS", "true")

    # SMS / Twilio (optional; SMS reminders are only logged when unset)
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_FROM_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "")
    TWILIO_API_BASE: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com")

    SURVEY_BASE_URL: str = os.getenv("SURVEY_BASE_URL", "http://localhost:5000")

    # Dispatcher
    DISPATCHER_ENABLED: bool = _env_bool("DISPATCHER_ENABLED", "true")
    DISPATCH_INTERVAL_SECONDS: int = int(os.getenv("DISPATCH_INTERVAL_SECONDS", "60"))
    DISPATCH_CONCURRENCY: int = int(os.getenv("DISPATCH_CONCURRENCY", "4"))
    # Used as the due window of an assignment when its schedule has no next run
    ASSIGNMENT_DUE_DAYS: int = int(os.getenv("ASSIGNMENT_DUE_DAYS", "7"))
    REMINDER_INTERVAL_HOURS: int = int(os.getenv("REMINDER_INTERVAL_HOURS", "48"))
    MAX_REMINDERS: int = int(os.getenv("MAX_REMINDERS", "2"))
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "America/New_York")

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sms_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_FROM_NUMBER)


settings = Settings()
