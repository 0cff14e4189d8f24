"""
Test suite for application settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.core.config import DEFAULT_SECRET_KEY, Settings


class TestSettings:
    """Test settings defaults and validation."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.default_page_size == 20
        assert settings.max_page_size == 100
        assert settings.free_shipping_threshold == Decimal("50.00")
        assert settings.flat_shipping_fee == Decimal("5.99")
        assert settings.stock_reservation_mode == "transaction"

    def test_environment_variables_use_prefix(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_ORDER_RATE_LIMIT", "5/minute")
        monkeypatch.setenv("STOREFRONT_STOCK_RESERVATION_MODE", "compensating")
        monkeypatch.setenv("STOREFRONT_CORS_ORIGINS", "https://a.example, https://b.example")

        settings = Settings(_env_file=None)

        assert settings.order_rate_limit == "5/minute"
        assert settings.stock_reservation_mode == "compensating"
        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    def test_default_secret_rejected_in_production(self):
        with pytest.raises(ValidationError, match="Default secret key"):
            Settings(_env_file=None, environment="production", secret_key=DEFAULT_SECRET_KEY)

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, secret_key="short")

    @pytest.mark.parametrize(
        "url",
        [
            "postgresql://u:p@localhost/db",
            "postgresql+asyncpg://u:p@localhost/db",
            "sqlite+aiosqlite:///./storefront.db",
        ],
    )
    def test_supported_database_urls(self, url):
        assert Settings(_env_file=None, database_url=url).database_url == url

    def test_unsupported_database_url(self):
        with pytest.raises(ValidationError, match="Database URL"):
            Settings(_env_file=None, database_url="mysql://u:p@localhost/db")

    def test_unknown_reservation_mode(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, stock_reservation_mode="eventual")

    def test_environment_flags(self):
        settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///x.db")

        assert settings.is_sqlite is True
        assert settings.is_development is True
        assert settings.is_production is False
