"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-payments", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Storefront
    public_origin: str = Field(
        default="http://localhost:5173",
        description="Public storefront origin used to build LiqPay result and callback URLs",
    )
    store_currency: str = Field(default="UAH", description="Currency of all stored amounts")

    # LiqPay
    liqpay_public_key: str = Field(default="", description="LiqPay public key")
    liqpay_private_key: str = Field(default="", description="LiqPay private signing key")
    liqpay_sandbox: bool = Field(default=False, description="Send sandbox=1 with checkout requests")

    # Checkbox (fiscal receipts)
    checkbox_login: str = Field(default="", description="Checkbox cashier login")
    checkbox_password: str = Field(default="", description="Checkbox cashier password")
    checkbox_license_key: str = Field(default="", description="Checkbox cash register license key")
    checkbox_cash_register_id: str = Field(default="", description="Checkbox cash register ID (optional)")
    checkbox_production: bool = Field(default=False, description="Use the production Checkbox API instead of dev")
    fiscal_vat_rate: int = Field(default=20, description="VAT percentage applied to every fiscal line item")

    # Outbound HTTP
    external_http_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for calls to LiqPay and Checkbox",
    )

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="Store <noreply@example.com>",
        description="From address for transactional emails",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_liqpay_configured(self) -> bool:
        """Check if both LiqPay keys are present."""
        return bool(self.liqpay_public_key and self.liqpay_private_key)

    @property
    def is_checkbox_configured(self) -> bool:
        """Check if the Checkbox credentials are present."""
        return bool(self.checkbox_login and self.checkbox_password and self.checkbox_license_key)

    @property
    def liqpay_result_url(self) -> str:
        """URL the customer is sent back to after paying."""
        return f"{self.public_origin.rstrip('/')}/payment/result"

    @property
    def liqpay_server_url(self) -> str:
        """URL LiqPay calls with payment status updates."""
        return f"{self.public_origin.rstrip('/')}/api/v1/webhooks/liqpay"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
