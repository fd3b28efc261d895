"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


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
    app_name: str = Field(default="fulfillment-core", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")

    # Carrier label service (edge functions in front of the carrier API)
    carrier_service_url: str = Field(
        default="",
        description="Base URL of the carrier label service. Defaults to the Supabase functions endpoint.",
    )
    carrier_create_label_path: str = Field(default="shipengine-create-label", description="Label creation function")
    carrier_void_label_path: str = Field(default="shipengine-void-label", description="Label void function")
    carrier_timeout_seconds: float = Field(default=30.0, description="Carrier HTTP timeout in seconds")

    # Inventory
    inventory_reason_codes: str = Field(
        default=(
            "spoilage,pest_damage,weather_damage,quality_issue,"
            "customer_return,inventory_count,data_correction,other"
        ),
        description="Comma-separated allow-list of inventory adjustment reason codes",
    )
    bulk_inventory_reason_code: str = Field(
        default="inventory_count",
        description="Reason code recorded for bulk inventory edits",
    )

    # Orders
    extra_order_statuses: str = Field(
        default="",
        description="Comma-separated order statuses added to the base enumeration",
    )
    refundable_payment_statuses: str = Field(
        default="paid,succeeded,partial",
        description="Comma-separated payment statuses that allow refunds",
    )

    @model_validator(mode="after")
    def set_carrier_service_default(self) -> "Settings":
        """Point the carrier service at the Supabase functions endpoint if unset."""
        if not self.carrier_service_url:
            self.carrier_service_url = f"{self.supabase_url.rstrip('/')}/functions/v1"
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return _split_csv(self.cors_origins)

    @property
    def inventory_reason_codes_list(self) -> list[str]:
        """Parse the reason-code allow-list."""
        return _split_csv(self.inventory_reason_codes)

    @property
    def extra_order_statuses_list(self) -> list[str]:
        """Parse configured order status extensions."""
        return _split_csv(self.extra_order_statuses)

    @property
    def refundable_payment_statuses_list(self) -> list[str]:
        """Parse payment statuses that count as paid."""
        return _split_csv(self.refundable_payment_statuses)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")


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
