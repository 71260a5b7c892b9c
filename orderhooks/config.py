"""Webhook receiver configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import PositiveInt
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the webhook receiver.

    An unset webhook secret fails each webhook request, not application startup.
    """

    shopify_webhook_secret: str = ""

    # Idempotency store
    idempotency_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6381/0"
    idempotency_ttl_seconds: PositiveInt | None = None  # None = keys never expire

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000

    model_config = {"env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Load settings fresh from the environment."""
    return Settings()
