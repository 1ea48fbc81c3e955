"""Local-testing convenience: resolve to any existing tenant.

Kept as its own component so production wiring never constructs it.
``create_resolver`` only attaches it outside production, the settings model
rejects ``allow_dev_tenant_fallback`` in production, and the constructor
below refuses a production environment outright.
"""

from __future__ import annotations

from restaurant_tenancy.config import Environment, Settings
from restaurant_tenancy.tenancy.directory import TenantDirectory
from restaurant_tenancy.tenancy.resolver import TenantResolver


class DevelopmentTenantFallback:
    def __init__(self, directory: TenantDirectory, environment: Environment) -> None:
        if environment == Environment.PRODUCTION:
            raise RuntimeError(
                "DevelopmentTenantFallback must not be constructed in production"
            )
        self._directory = directory

    async def pick(self) -> int | None:
        return await self._directory.any_tenant_id()


def create_resolver(settings: Settings, directory: TenantDirectory) -> TenantResolver:
    """Build the resolver for the configured environment."""
    fallback = None
    if settings.allow_dev_tenant_fallback and not settings.is_prod:
        fallback = DevelopmentTenantFallback(directory, settings.environment)
    return TenantResolver(
        override_roles=settings.tenant_override_roles,
        fallback=fallback,
    )
