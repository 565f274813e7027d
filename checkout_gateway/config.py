from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


class Settings(BaseSettings):
    """Gateway configuration, read once from the environment."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    database_url: str = Field(..., description="SQLAlchemy database URL")
    jwt_secret: SecretStr = Field(..., description="HS256 key for user bearer tokens")

    base_url: str = "http://localhost:8000"
    app_name: str = "Billing"
    local_currency: str = "CNY"

    stripe_checkout_enabled: bool = True
    stripe_checkout_sk: SecretStr = SecretStr("")
    stripe_checkout_pk: str = ""
    stripe_checkout_currency: str = "cny"
    stripe_checkout_min_recharge: Decimal = Field(default=Decimal("10"), gt=0)
    stripe_checkout_max_recharge: Decimal = Field(default=Decimal("1000"), gt=0)
    stripe_checkout_locale: str = "auto"

    # Outbound call limits
    stripe_timeout: float = Field(default=10.0, gt=0)
    stripe_max_network_retries: int = Field(default=2, ge=0, le=5)
    exchange_rate_url: str = "https://api.exchangerate.host/latest"
    exchange_rate_timeout: float = Field(default=5.0, gt=0)

    register_webhook_on_startup: bool = True
    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_recharge_bounds(self):
        if self.stripe_checkout_max_recharge < self.stripe_checkout_min_recharge:
            raise ValueError(
                "stripe_checkout_max_recharge must be >= stripe_checkout_min_recharge"
            )
        return self

    @property
    def notify_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/payment/notify/stripe_checkout"

    @property
    def return_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/payment/return/stripe_checkout"


@lru_cache()
def get_config() -> Settings:
    """Get cached settings instance."""
    return Settings()
