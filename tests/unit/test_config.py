"""Unit tests for configuration module."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, get_settings

REQUIRED_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SECRET_KEY": "test-secret",
    "SUPABASE_SIGNING_KEY_JWK": "{}",
}


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        """Test that Settings loads values from environment variables."""
        env_vars = {
            **REQUIRED_ENV,
            "APP_ENV": "production",
            "PORT": "9000",
            "LIQPAY_SANDBOX": "true",
            "CHECKBOX_PRODUCTION": "true",
            "FISCAL_VAT_RATE": "7",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.port == 9000
            assert settings.app_env == "production"
            assert settings.liqpay_sandbox is True
            assert settings.checkbox_production is True
            assert settings.fiscal_vat_rate == 7

    def test_settings_requires_supabase(self) -> None:
        """Test that missing Supabase settings fail validation."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_cors_origins_list(self) -> None:
        env_vars = {**REQUIRED_ENV, "CORS_ORIGINS": "http://localhost:5173, https://shop.example.com ,"}

        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings().cors_origins_list == ["http://localhost:5173", "https://shop.example.com"]

    def test_liqpay_urls_from_public_origin(self) -> None:
        """Test that result and callback URLs hang off the public origin."""
        env_vars = {**REQUIRED_ENV, "PUBLIC_ORIGIN": "https://shop.example.com/"}

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.liqpay_result_url == "https://shop.example.com/payment/result"
            assert settings.liqpay_server_url == "https://shop.example.com/api/v1/webhooks/liqpay"

    @pytest.mark.parametrize(
        ("env", "expected"),
        [
            ({"LIQPAY_PUBLIC_KEY": "pub", "LIQPAY_PRIVATE_KEY": "priv"}, True),
            ({"LIQPAY_PUBLIC_KEY": "pub", "LIQPAY_PRIVATE_KEY": ""}, False),
        ],
    )
    def test_is_liqpay_configured(self, env: dict[str, str], expected: bool) -> None:
        with patch.dict(os.environ, {**REQUIRED_ENV, **env}, clear=False):
            assert Settings().is_liqpay_configured is expected

    def test_is_checkbox_configured_needs_license_key(self) -> None:
        env_vars = {**REQUIRED_ENV, "CHECKBOX_LOGIN": "cashier", "CHECKBOX_PASSWORD": "secret", "CHECKBOX_LICENSE_KEY": ""}

        with patch.dict(os.environ, env_vars, clear=False):
            assert Settings().is_checkbox_configured is False


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestProviderFactories:
    """Tests for the provider client factories."""

    def test_liqpay_client_none_without_keys(self) -> None:
        from src.core.liqpay import get_liqpay_client

        with patch.dict(os.environ, {"LIQPAY_PUBLIC_KEY": "", "LIQPAY_PRIVATE_KEY": ""}, clear=False):
            get_settings.cache_clear()
            get_liqpay_client.cache_clear()
            try:
                assert get_liqpay_client() is None
            finally:
                get_liqpay_client.cache_clear()
                get_settings.cache_clear()

    def test_checkbox_client_none_without_credentials(self) -> None:
        from src.core.checkbox import get_checkbox_client

        with patch.dict(os.environ, {"CHECKBOX_LOGIN": ""}, clear=False):
            get_settings.cache_clear()
            get_checkbox_client.cache_clear()
            try:
                assert get_checkbox_client() is None
            finally:
                get_checkbox_client.cache_clear()
                get_settings.cache_clear()
