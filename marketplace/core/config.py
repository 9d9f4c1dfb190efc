# marketplace/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Set

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


PROD_SITE_MODES: Set[str] = {"prod", "production", "live"}


def _classify_site_mode(raw_site_mode: str | None) -> tuple[str, bool]:
    """Return normalized site mode and whether it is a production mode."""

    normalized = (raw_site_mode or "").strip().lower()
    return normalized, normalized in PROD_SITE_MODES


class Settings(BaseSettings):
    # Database
    database_url: str = Field(
        default="sqlite:///./marketplace.db",
        description="SQLAlchemy database URL",
    )
    db_statement_timeout_ms: int = Field(
        default=15000,
        description="Per-statement timeout applied on PostgreSQL connections",
    )
    db_pool_size: int = Field(default=5, description="Connection pool size (PostgreSQL)")
    db_max_overflow: int = Field(default=5, description="Pool overflow connections (PostgreSQL)")

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )

    # Webhook secrets - local CLI secret first, then the deployed endpoint secret
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook secret for local dev (Stripe CLI)",
    )
    stripe_webhook_secret_platform: SecretStr = Field(
        default=SecretStr(""),
        description="Platform events webhook secret (deployed)",
    )
    stripe_webhook_tolerance_seconds: int = Field(
        default=300,
        description="Maximum age of a signed webhook timestamp",
    )

    stripe_platform_fee_percentage: Decimal = Field(
        default=Decimal("15"), description="Platform fee percentage (15 = 15%)"
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")

    # Webhook processing
    webhook_processing_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for verifying and committing one webhook delivery",
    )
    idempotency_retention_days: int = Field(
        default=30,
        description="Days to keep processed transaction ids (Stripe redelivers for up to 3 days)",
    )

    log_level: str = Field(default="INFO", description="Root log level")

    # Environment (derived from SITE_MODE)
    environment: str = (
        "production" if _classify_site_mode(os.getenv("SITE_MODE", "local"))[1] else "development"
    )

    is_testing: bool = False  # Set to True when running tests

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_platform_fee_percentage")
    @classmethod
    def _validate_fee_percentage(cls, value: Decimal) -> Decimal:
        if value < 0 or value > 100:
            raise ValueError("stripe_platform_fee_percentage must be between 0 and 100")
        return value

    @field_validator("stripe_currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def platform_fee_rate(self) -> Decimal:
        """Platform fee as a fraction (15% -> Decimal('0.15'))."""
        return self.stripe_platform_fee_percentage / Decimal(100)

    @property
    def webhook_secrets(self) -> list[str]:
        """Build list of webhook secrets to try in order."""
        secrets = []
        for candidate in (self.stripe_webhook_secret, self.stripe_webhook_secret_platform):
            secret_str = candidate.get_secret_value() if candidate else ""
            if secret_str:
                secrets.append(secret_str)
        return secrets


settings = Settings()
