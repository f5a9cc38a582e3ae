"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    environment: str = Field(default="development", alias="ENVIRONMENT")
    database_url: str = Field(
        default="sqlite:///./practice.db", alias="DATABASE_URL"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_ca_cert_path: str = Field(
        default="certs/redis_ca.pem", alias="REDIS_CA_CERT_PATH"
    )
    celery_broker_url: str | None = Field(
        default=None, alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str | None = Field(
        default=None, alias="CELERY_RESULT_BACKEND"
    )
    payment_provider_base_url: str | None = Field(
        default=None, alias="PAYMENT_PROVIDER_BASE_URL"
    )
    payment_provider_api_token: str | None = Field(
        default=None, alias="PAYMENT_PROVIDER_API_TOKEN"
    )
    payment_provider_timeout_seconds: float = Field(
        default=10.0, alias="PAYMENT_PROVIDER_TIMEOUT_SECONDS"
    )
    payment_provider_webhook_secret: str | None = Field(
        default=None, alias="PAYMENT_PROVIDER_WEBHOOK_SECRET"
    )
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")
    batch_sweep_hour_utc: int = Field(default=6, alias="BATCH_SWEEP_HOUR_UTC")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def broker_url(self) -> str:
        """Return the Celery broker URL, defaulting to Redis."""

        return self.celery_broker_url or self.redis_url

    @property
    def result_backend(self) -> str:
        """Return the Celery result backend, defaulting to the Redis URL."""

        if self.celery_result_backend:
            return self.celery_result_backend
        return self.redis_url

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def payment_provider_configured(self) -> bool:
        """Return ``True`` when invoices can be pushed to the payment provider."""

        return bool(self.payment_provider_base_url and self.payment_provider_api_token)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
