"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite:///./portal.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS (admin portal + public website)
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:5174"

    # Frontends (deep links in emails)
    ADMIN_PORTAL_URL: str = "http://localhost:5174"
    WEBSITE_URL: str = "http://localhost:5173"

    # Logging / error tracking
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str = ""

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_BOOKING: str = "10/minute"

    # Google Calendar - service account (preferred)
    GOOGLE_SERVICE_ACCOUNT_EMAIL: str = ""
    GOOGLE_PRIVATE_KEY: str = ""
    GOOGLE_DELEGATE_USER: str = ""  # Domain-wide delegation subject (Workspace only)

    # Google Calendar - OAuth2 refresh token (fallback)
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REFRESH_TOKEN: str = ""

    GOOGLE_CALENDAR_ID: str = "primary"
    GOOGLE_CALENDAR_TIMEZONE: str = "Asia/Kolkata"
    CALENDAR_TIMEOUT_SECONDS: float = 20.0

    # SMTP
    SMTP_HOST: str = "smtp.hostinger.com"
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False  # True = implicit TLS (port 465)
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    MAIL_FROM: str = ""

    # Notification worker pool
    NOTIFICATION_WORKERS: int = 2
    NOTIFICATION_QUEUE_SIZE: int = 100

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Secrets to try when verifying tokens (current first)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def google_private_key(self) -> str:
        """
        Private key as PEM text.

        Env files often carry the key quoted and with literal "\\n" sequences.
        """
        key = self.GOOGLE_PRIVATE_KEY.strip()
        if len(key) >= 2 and key[0] == key[-1] and key[0] in ("'", '"'):
            key = key[1:-1]
        return key.replace("\\n", "\n")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_USER and self.SMTP_PASS)

    @property
    def mail_from_address(self) -> str:
        return self.MAIL_FROM or self.SMTP_USER


settings = Settings()
