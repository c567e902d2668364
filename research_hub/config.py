"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # Trusted-claim tokens (demo identities) skip the user lookup.
    # Reduced assurance: role/department come straight from the token.
    allow_trusted_claims: bool = True

    # ==========================================================================
    # Store
    # ==========================================================================

    # Every store call fails closed after this many seconds
    store_timeout_seconds: float = 5.0

    # YAML fixture loaded into the in-memory store at startup
    seed_file: str = ""

    # ==========================================================================
    # Behaviour switches
    # ==========================================================================

    # Reject project status changes outside the lifecycle graph
    enforce_status_transitions: bool = False

    # Delete a project's tasks and comments along with it
    cascade_deletes: bool = False

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
