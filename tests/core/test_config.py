"""
Test suite for application settings.

Run tests:
    pytest tests/core/test_config.py -v
"""

import pytest
from pydantic import ValidationError

from billing.core.config import Settings


class TestSettings:

    def test_defaults(self):
        """Lifecycle defaults match the documented values."""
        settings = Settings(_env_file=None)

        assert settings.SUBSCRIPTION_FREE_PLAN_ID == "free"
        assert settings.SUBSCRIPTION_FREE_REF_PREFIX == "free_"
        assert settings.SUBSCRIPTION_FALLBACK_BILLING_DAYS == 30
        assert settings.SUBSCRIPTION_PAYMENT_LOOKUP_ATTEMPTS == 5
        assert settings.SUBSCRIPTION_PAYMENT_LOOKUP_DELAY_SECONDS == 2.0
        assert settings.PROVIDER_MAX_ATTEMPTS == 3

    def test_production_rejects_default_provider_key(self, monkeypatch):
        """Production refuses to start with the placeholder provider key."""
        monkeypatch.delenv("PROVIDER_API_KEY", raising=False)

        with pytest.raises(ValidationError, match="PROVIDER_API_KEY"):
            Settings(_env_file=None, ENVIRONMENT="production")

    def test_production_accepts_real_provider_key(self):
        """A configured key passes validation."""
        settings = Settings(
            _env_file=None, ENVIRONMENT="production", PROVIDER_API_KEY="sk_live_123"
        )

        assert settings.PROVIDER_API_KEY == "sk_live_123"

    def test_non_production_allows_default_key(self):
        """Development and test keep the placeholder key."""
        settings = Settings(_env_file=None, ENVIRONMENT="test")

        assert settings.PROVIDER_API_KEY == "your_provider_api_key"
