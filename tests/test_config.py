from __future__ import annotations

from decimal import Decimal

from pydantic import SecretStr, ValidationError
import pytest

from marketplace.core.config import Settings


def test_platform_fee_rate_is_a_fraction():
    settings = Settings(stripe_platform_fee_percentage=Decimal("15"))

    assert settings.platform_fee_rate == Decimal("0.15")


def test_fee_percentage_must_be_a_percentage():
    with pytest.raises(ValidationError):
        Settings(stripe_platform_fee_percentage=Decimal("150"))


def test_webhook_secrets_skip_empty_values_and_keep_order():
    settings = Settings(
        stripe_webhook_secret=SecretStr(""),
        stripe_webhook_secret_platform=SecretStr("whsec_platform"),
    )
    assert settings.webhook_secrets == ["whsec_platform"]

    both = Settings(
        stripe_webhook_secret=SecretStr("whsec_cli"),
        stripe_webhook_secret_platform=SecretStr("whsec_platform"),
    )
    assert both.webhook_secrets == ["whsec_cli", "whsec_platform"]


def test_currency_is_normalized():
    assert Settings(stripe_currency=" USD ").stripe_currency == "usd"
