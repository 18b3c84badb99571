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
    DATABASE_URL: str

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Mailgun (workflow emails). Delivery is skipped unless key and domain are set.
    MAILGUN_API_KEY: str = ""
    MAILGUN_DOMAIN: str = ""
    MAILGUN_FROM_EMAIL: str = ""  # Falls back to no-reply@<domain>
    MAILGUN_FROM_NAME: str = "Clinic"
    MAILGUN_API_BASE_URL: str = "https://api.mailgun.net"
    MAILGUN_TIMEOUT_SECONDS: float = 20.0

    # WhatsApp bridge server (workflow chat messages)
    WHATSAPP_SERVER_URL: str = "http://localhost:3001"
    WHATSAPP_API_KEY: str = ""
    WHATSAPP_TIMEOUT_SECONDS: float = 15.0

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def mailgun_configured(self) -> bool:
        return bool(self.MAILGUN_API_KEY and self.MAILGUN_DOMAIN)


settings = Settings()
