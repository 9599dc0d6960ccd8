"""
Application Settings for the AcolheAqui billing webhooks service

Centralized configuration using Pydantic Settings with .env support.
A single Settings instance is built at startup and injected into the app.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


GatewaySecretName = Literal[
    "stripe",
    "mercadopago",
    "asaas",
    "pagseguro",
    "pagarme",
    "generic",
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Gateway secrets are optional. When a secret is configured, webhooks from
    that gateway must carry a valid signature; WEBHOOK_REQUIRE_SIGNATURE
    extends that requirement to gateways without a configured secret.
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration (payment gateways post from anywhere)
    allowed_origins: list[str] = ["*"]

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_url: Optional[str] = None
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    # Reconciliation
    default_paid_plan: Literal["pro", "premium"] = "pro"
    status_fallback: Literal[
        "active", "trialing", "past_due", "cancelled", "expired"
    ] = "past_due"

    # Webhook signature verification
    webhook_require_signature: bool = False
    stripe_webhook_secret: Optional[str] = None
    stripe_signature_tolerance: int = 300
    mercadopago_webhook_secret: Optional[str] = None
    asaas_webhook_token: Optional[str] = None
    pagseguro_webhook_token: Optional[str] = None
    pagarme_webhook_secret: Optional[str] = None
    generic_webhook_secret: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_database_source(self) -> "Settings":
        """SUPABASE_PASSWORD is only meaningful together with SUPABASE_URL."""
        if self.supabase_password and not self.supabase_url and not self.database_url:
            raise ValueError(
                "SUPABASE_URL is required when SUPABASE_PASSWORD is set"
            )
        return self

    @property
    def has_database(self) -> bool:
        """Whether enough configuration exists to open a database connection."""
        return bool(self.database_url or (self.supabase_url and self.supabase_password))

    def webhook_secret_for(self, gateway: GatewaySecretName) -> Optional[str]:
        """Return the configured verification secret for a gateway."""
        return {
            "stripe": self.stripe_webhook_secret,
            "mercadopago": self.mercadopago_webhook_secret,
            "asaas": self.asaas_webhook_token,
            "pagseguro": self.pagseguro_webhook_token,
            "pagarme": self.pagarme_webhook_secret,
            "generic": self.generic_webhook_secret,
        }.get(gateway)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
