from functools import lru_cache
import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from billing.core.logger import setup_logger, init_sentry


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, test, production
    APP_NAME: str = "Billing"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./billing.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Billing provider settings
    PROVIDER_API_KEY: str = "your_provider_api_key"
    PROVIDER_MAX_ATTEMPTS: int = 3
    PROVIDER_BACKOFF_BASE_SECONDS: float = 1.0
    PROVIDER_BACKOFF_MAX_SECONDS: float = 30.0
    PROVIDER_BACKOFF_JITTER: float = 0.2  # +/-20%

    # Subscription lifecycle settings
    SUBSCRIPTION_FREE_PLAN_ID: str = "free"
    SUBSCRIPTION_FREE_REF_PREFIX: str = "free_"
    SUBSCRIPTION_FALLBACK_BILLING_DAYS: int = 30
    SUBSCRIPTION_PAYMENT_LOOKUP_ATTEMPTS: int = 5
    SUBSCRIPTION_PAYMENT_LOOKUP_DELAY_SECONDS: float = 2.0

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        """Ensure insecure default secrets are overridden in production."""
        if self.ENVIRONMENT != "production":
            return self

        insecure_defaults: dict[str, str] = {
            "PROVIDER_API_KEY": "your_provider_api_key",
        }

        still_default = [
            name
            for name, default_val in insecure_defaults.items()
            if getattr(self, name) == default_val
        ]

        if still_default:
            raise ValueError(
                f"ENVIRONMENT is 'production' but the following secrets still "
                f"have their insecure default values: {', '.join(still_default)}. "
                f"Set them via environment variables or .env file."
            )

        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

# Each component gets its own log file and Sentry tag
app_logger = setup_logger(
    name="app_logger",
    log_file="logs/app.log",
    level=logging.INFO,
    sentry_tag="app",
)
database_logger = setup_logger(
    name="database_logger",
    log_file="logs/database.log",
    level=logging.INFO,
    sentry_tag="database",
)
provider_logger = setup_logger(
    name="provider_logger",
    log_file="logs/provider.log",
    level=logging.INFO,
    sentry_tag="provider",
)
subscription_logger = setup_logger(
    name="subscription_logger",
    log_file="logs/subscription.log",
    level=logging.INFO,
    sentry_tag="subscription",
)
audit_logger = setup_logger(
    name="audit_logger",
    log_file="logs/audit.log",
    level=logging.INFO,
    sentry_tag="audit",
)

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "app_logger",
    "database_logger",
    "provider_logger",
    "subscription_logger",
    "audit_logger",
]
