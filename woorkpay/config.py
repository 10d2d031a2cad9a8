"""Application configuration settings."""
from __future__ import annotations

import os
from decimal import Decimal
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("APP_ENV", "dev").lower()

# Environments where Base.metadata.create_all() is tolerated.
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


class Settings(BaseSettings):
    """Environment configuration for the Woorkpay backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///woorkpay.db"
    LOG_LEVEL: str = "INFO"
    ALLOW_DB_CREATE_ALL: bool = False

    # --- Auth (JWTs issued by the hosted auth provider) -------------------
    AUTH_JWT_SECRET: str | None = None
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # --- Mercado Pago ----------------------------------------------------
    MERCADOPAGO_ACCESS_TOKEN: str | None = None
    MERCADOPAGO_API_BASE_URL: str = "https://api.mercadopago.com"
    MERCADOPAGO_TIMEOUT_SECONDS: float = 15.0
    MERCADOPAGO_NOTIFICATION_URL: str | None = None
    MERCADOPAGO_WEBHOOK_SECRET: str | None = None
    MERCADOPAGO_PIX_FEE_PERCENT: Decimal = Decimal("0")
    MERCADOPAGO_CARD_FEE_PERCENT: Decimal = Decimal("0")

    # --- Marketplace -----------------------------------------------------
    PLATFORM_COMMISSION_PERCENT: Decimal = Decimal("10")

    # --- Reconciliation job ----------------------------------------------
    SCHEDULER_ENABLED: bool = False
    RECONCILE_INTERVAL_MINUTES: int = 10
    RECONCILE_MIN_AGE_MINUTES: int = 5
    RECONCILE_BATCH_SIZE: int = 50

    CORS_ALLOW_ORIGINS: list[str] = [
        "https://woorkins.com",
        "https://app.woorkins.com",
        "http://localhost:5173",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("MERCADOPAGO_ACCESS_TOKEN", "MERCADOPAGO_WEBHOOK_SECRET", "AUTH_JWT_SECRET")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def mercadopago_configured(self) -> bool:
        return bool(self.MERCADOPAGO_ACCESS_TOKEN)


class AppInfo(BaseModel):
    name: str = "woorkpay-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "ALLOWED_CREATE_ENV",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
