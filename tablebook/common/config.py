"""Central environment-driven settings for the booking API.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "tablebook-api"
    log_level: str = "INFO"
    postgres_dsn: str
    admin_api_key: str
    redis_url: str = "redis://redis:6379/0"
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"

    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_webhook_tolerance_seconds: int = 300
    checkout_currency: str = "gbp"
    checkout_success_url: str = "https://dineselect.co/table-picker/success.html?session_id={CHECKOUT_SESSION_ID}"
    checkout_cancel_url: str = "https://dineselect.co/table-picker/pick-seat.html"
    table_selection_url: str = "https://dineselect.co/table-picker/pick-seat.html"

    booking_duration_minutes: int = 120
    hold_duration_minutes: int = 5
    hold_reaper_interval_seconds: int = 0
    hold_reaper_grace_minutes: int = 60
    webhook_stall_seconds: int = 600

    resend_api_key: str = ""
    notification_sender: str = "info@dineselect.co"
    staff_email: str = "bookings@dineselect.co"
    automation_webhook_url: str = ""

    rate_limit_per_minute: int = 30
    cors_allow_origins: str = "*"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = CommonSettings()
