"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from environment
variables.  Defaults are provided for every field so that the service
starts without any provider credentials: in that mode emails are written
to the log instead of being sent and payment routes answer with a
"not configured" error.  In a production deployment override these via
environment variables (for example from a ``backend/.env`` file loaded
by your process manager).
"""

import os
from dataclasses import dataclass


# Values shipped in example .env files that must not count as credentials.
PLACEHOLDER_VALUES = {"", "your_key", "your_secret", "changeme", "change_me"}


def is_configured(value: str | None) -> bool:
    """Return True when ``value`` looks like a real credential."""
    return bool(value) and value.strip() not in PLACEHOLDER_VALUES


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Shopki API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path to the SQLite document store.  Relative paths are resolved
    # against the project root by the ``db`` module.
    database_path: str = os.getenv("DATABASE_PATH", "shopki.db")

    # Comma-separated list of frontend origins allowed by CORS.
    cors_origins: str = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
    )

    # Comma-separated bearer tokens accepted on admin routes (reconcile,
    # order fulfilment, catalog writes, templates, statistics).
    admin_api_tokens: str = os.getenv("ADMIN_API_TOKENS", "")

    # Public URL of the storefront, used for links inside emails.
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "https://shopki.com")
    support_email: str = os.getenv("SUPPORT_EMAIL", "support@shopki.com")

    # Transactional email.  ``sendgrid`` or ``brevo``.
    email_provider: str = os.getenv("EMAIL_PROVIDER", "sendgrid").lower()
    email_api_key: str = os.getenv("EMAIL_API_KEY", "")
    email_sender_address: str = os.getenv("EMAIL_SENDER_ADDRESS", "support@shopki.com")
    email_sender_name: str = os.getenv("EMAIL_SENDER_NAME", "Shopki")

    # Safaricom Daraja (direct M-Pesa).  Sandbox short code and passkey are
    # public test values published by Safaricom.
    mpesa_base_url: str = os.getenv("MPESA_BASE_URL", "https://sandbox.safaricom.co.ke")
    mpesa_consumer_key: str = os.getenv("MPESA_CONSUMER_KEY", "")
    mpesa_consumer_secret: str = os.getenv("MPESA_CONSUMER_SECRET", "")
    mpesa_short_code: str = os.getenv("MPESA_SHORT_CODE", "174379")
    mpesa_passkey: str = os.getenv(
        "MPESA_PASSKEY",
        "bfb279f9ba9b9d0e61f1567f58f3cb4351714ebf750d86640fcd51e6002f18e2",
    )
    mpesa_callback_url: str = os.getenv("MPESA_CALLBACK_URL", "https://your-domain/api/mpesa/callback")

    # Lipana M-Pesa aggregator.  Webhooks are signed with the webhook
    # secret when present, otherwise with the API secret key.
    lipana_base_url: str = os.getenv("LIPANA_BASE_URL", "https://api.lipana.dev")
    lipana_secret_key: str = os.getenv("LIPANA_SECRET_KEY", "")
    lipana_webhook_secret: str = os.getenv("LIPANA_WEBHOOK_SECRET", "")

    # Card payments
    paypal_mode: str = os.getenv("PAYPAL_MODE", "sandbox")
    paypal_client_id: str = os.getenv("PAYPAL_CLIENT_ID", "")
    paypal_client_secret: str = os.getenv("PAYPAL_CLIENT_SECRET", "")
    paypal_currency: str = os.getenv("PAYPAL_CURRENCY", "USD")
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_currency: str = os.getenv("STRIPE_CURRENCY", "usd")

    # Seconds a customer has to approve an STK push before the order's
    # payment is considered expired.
    payment_window_seconds: int = int(os.getenv("PAYMENT_WINDOW_SECONDS", "300"))
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    @property
    def webhook_secret(self) -> str:
        return self.lipana_webhook_secret or self.lipana_secret_key

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def admin_token_list(self) -> list[str]:
        return [t.strip() for t in self.admin_api_tokens.split(",") if t.strip()]


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables should
# be set before importing this module.
settings = Settings()
