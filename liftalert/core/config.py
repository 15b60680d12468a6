"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.3.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./liftalert.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # WhatsApp Cloud API
    WHATSAPP_API_BASE: str = "https://graph.facebook.com"
    WHATSAPP_API_VERSION: str = "v23.0"
    WHATSAPP_PHONE_NUMBER_ID: str = ""
    WHATSAPP_ACCESS_TOKEN: str = ""
    WHATSAPP_VERIFY_TOKEN: str = ""  # hub.verify_token for webhook subscription
    WHATSAPP_APP_SECRET: str = ""  # X-Hub-Signature-256 validation (skipped when empty)
    GATEWAY_TIMEOUT_SECONDS: float = 30.0

    # Alert template (must be approved on the WhatsApp Business account)
    ALERT_TEMPLATE_NAME: str = "lift_emergency_alert"
    ALERT_TEMPLATE_LANG: str = "en"

    # Inbound SMS webhook (HMAC-SHA256 hex in X-Signature, skipped when empty)
    SMS_HMAC_SECRET: str = ""

    # Internal scheduled endpoints and admin reads
    INTERNAL_SECRET: str = ""
    ADMIN_TOKEN: str = ""

    # Reminder scheduler
    SCHEDULER_ENABLED: bool = True
    REMINDER_INTERVAL_SECONDS: int = 60
    REMINDER_COOLDOWN_SECONDS: int = 60  # Use a longer cadence in production
    MAX_REMINDERS: int = 3

    # Button click to ticket matching
    TICKET_MATCH_WINDOW_HOURS: int = 6
    CLOSED_TICKET_WINDOW_MINUTES: int = 60
    STRICT_TICKET_MATCHING: bool = False  # Reject instead of guessing between open tickets

    # Observability
    INBOUND_BUFFER_SIZE: int = 50

    # Rate Limiting (requests per minute, 0 disables)
    RATE_LIMIT_WEBHOOK: int = 300

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def template_language_code(self) -> str:
        """Provider language code; bare "en" is sent as "en_US"."""
        lang = (self.ALERT_TEMPLATE_LANG or "en").strip()
        return "en_US" if lang == "en" else lang


settings = Settings()
