"""
credgate.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., JWT signing key).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-change-me-to-32-bytes!!"


class Settings(BaseSettings):
    """
    Env-driven settings. Defaults are safe for local dev only; the signing key,
    token lifetimes and database url are startup inputs and never change while
    the process runs.
    """

    model_config = SettingsConfigDict(env_prefix="CREDGATE_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "credgate"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    # Mount point for the auth/user routers, e.g. "/api/v1".
    api_prefix: str = ""

    # Token signing
    jwt_alg: str = "HS256"
    jwt_issuer: str = "credgate"
    jwt_audience: str = "credgate-api"
    jwt_secret: str = Field(default=DEV_JWT_SECRET, repr=False, min_length=32)

    # Token lifetimes
    access_token_ttl_seconds: int = Field(default=15 * 60, ge=1)
    refresh_token_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, ge=1)

    # Password hashing cost; tests lower this to keep bcrypt fast.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./credgate.db"

    @model_validator(mode="after")
    def _refuse_dev_secret_in_prod(self) -> Settings:
        if self.env == "prod" and self.jwt_secret == DEV_JWT_SECRET:
            raise ValueError("CREDGATE_JWT_SECRET must be set in prod")
        return self

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.access_token_ttl_seconds)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_ttl_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Rotating `jwt_secret` invalidates every outstanding access token; refresh tokens
# are opaque database rows and survive a rotation.
