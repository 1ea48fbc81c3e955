"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache
from typing import Self

from pydantic import SecretStr, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Secrets (database password, JWT signing key) use SecretStr to prevent
    accidental logging. Database URL is assembled from individual components
    to match the official PostgreSQL Docker image environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST", "PATCH", "DELETE"]
    cors_allowed_headers: list[str] = [
        "Content-Type",
        "Authorization",
        "X-Frontend-ID",
        "X-Frontend-Restaurant-ID",
    ]

    # --- PostgreSQL ---
    postgres_user: str = "restaurant_tenancy"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "restaurant_tenancy"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Redis (rate limit counters) ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Authentication ---
    jwt_secret: SecretStr = SecretStr("change-me-in-production-please-32b")
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 24 * 3600

    # --- Tenant resolution ---
    privileged_role: str = "super_admin"
    # Roles allowed to pick an arbitrary tenant via request parameter.
    tenant_override_roles: list[str] = ["super_admin"]
    tenant_param_names: list[str] = ["tenant_id", "restaurant_id"]
    frontend_id_header: str = "X-Frontend-ID"
    frontend_tenant_header: str = "X-Frontend-Restaurant-ID"
    # Never honoured in production; see DevelopmentTenantFallback.
    allow_dev_tenant_fallback: bool = False

    # --- Operation policy overrides, keyed by operation name ---
    operation_policies: dict[str, str] = {}

    # --- Rate limiting (fixed window, per tenant) ---
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 100
    rate_limit_exempt_operations: list[str] = []

    # --- Audit ---
    audit_write_timeout_seconds: float = 2.0

    @model_validator(mode="after")
    def _no_dev_fallback_in_production(self) -> Self:
        if self.allow_dev_tenant_fallback and self.environment == Environment.PRODUCTION:
            raise ValueError(
                "allow_dev_tenant_fallback cannot be enabled in production"
            )
        return self

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from restaurant_tenancy.config import get_settings
        settings = get_settings()

    Or for dependency injection in FastAPI::

        @app.get("/")
        def root(settings: Settings = Depends(get_settings)):
            ...
    """
    return Settings()


settings = get_settings()
