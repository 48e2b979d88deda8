"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Booking Settlement"
    debug: bool = True
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://settlement:settlement@db:5432/settlement"
    database_echo: bool = False

    # Stripe (test mode)
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_max_network_retries: int = 2
    stripe_refund_reason: str = "requested_by_customer"
    gateway_timeout_seconds: float = 20.0

    # Commission ledger
    default_commission_rate: float = 0.05

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_timeout_seconds: float = 10.0
    smtp_from: str = "noreply@settlement.local"
    admin_email: str = "admin@settlement.local"
    refund_processing_time: str = "5-10 business days"

    model_config = {"env_prefix": "BS_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
