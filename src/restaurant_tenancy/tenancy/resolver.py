"""Tenant resolution from inbound request signals.

Signals are consulted in a fixed priority order, first match wins:

1. Frontend header pair (frontend id + frontend-scoped tenant id).
2. Explicit tenant parameter, only for roles allowed to pick a tenant.
3. The actor's own tenant.
4. Path-derived tenant, for routes that operate on the tenant itself.
5. Non-production only: any existing tenant (``DevelopmentTenantFallback``).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from restaurant_tenancy.errors import TenantUnresolvedError

if TYPE_CHECKING:
    from restaurant_tenancy.auth.actor import Actor
    from restaurant_tenancy.tenancy.dev_fallback import DevelopmentTenantFallback

logger = structlog.get_logger()


class ResolutionSource(StrEnum):
    FRONTEND_HEADER = "frontend_header"
    PARAMETER = "parameter"
    ACTOR = "actor"
    PATH = "path"
    DEVELOPMENT_FALLBACK = "development_fallback"
    NONE = "none"


@dataclass(frozen=True)
class ResolutionSignals:
    """Raw evidence collected from one inbound operation.

    Values are kept as received (strings) and validated during resolution.
    """

    frontend_id: str | None = None
    frontend_tenant_id: str | None = None
    tenant_param: str | None = None
    path_tenant_id: str | None = None
    actor: Actor | None = None


@dataclass(frozen=True)
class Resolution:
    tenant_id: int | None
    source: ResolutionSource

    @property
    def resolved(self) -> bool:
        return self.tenant_id is not None


UNRESOLVED = Resolution(tenant_id=None, source=ResolutionSource.NONE)


def parse_tenant_id(value: str | int) -> int:
    """Validate a tenant identifier signal.

    A malformed value is rejected instead of skipped, so a bad header can
    never silently fall through to a lower-priority signal.

    Raises:
        TenantUnresolvedError: value is not a positive integer.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        tenant_id = value
    else:
        text = str(value).strip()
        if not text.isdigit():
            raise TenantUnresolvedError("Invalid restaurant identifier")
        tenant_id = int(text)
    if tenant_id <= 0:
        raise TenantUnresolvedError("Invalid restaurant identifier")
    return tenant_id


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


class TenantResolver:
    """Compute the candidate tenant for an operation.

    Stateless apart from its configuration; resolving the same signals
    twice yields the same result.
    """

    def __init__(
        self,
        *,
        override_roles: Iterable[str] = ("super_admin",),
        fallback: DevelopmentTenantFallback | None = None,
    ) -> None:
        self._override_roles = frozenset(override_roles)
        self._fallback = fallback

    @property
    def has_fallback(self) -> bool:
        return self._fallback is not None

    def resolve_signals(self, signals: ResolutionSignals) -> Resolution:
        """Apply signals 1-4. Pure: no I/O, no side effects."""
        if _present(signals.frontend_id) and _present(signals.frontend_tenant_id):
            return Resolution(
                parse_tenant_id(signals.frontend_tenant_id),  # type: ignore[arg-type]
                ResolutionSource.FRONTEND_HEADER,
            )

        actor = signals.actor
        if (
            _present(signals.tenant_param)
            and actor is not None
            and actor.role in self._override_roles
        ):
            return Resolution(
                parse_tenant_id(signals.tenant_param),  # type: ignore[arg-type]
                ResolutionSource.PARAMETER,
            )

        if actor is not None and actor.tenant_id is not None:
            return Resolution(actor.tenant_id, ResolutionSource.ACTOR)

        if _present(signals.path_tenant_id):
            return Resolution(
                parse_tenant_id(signals.path_tenant_id),  # type: ignore[arg-type]
                ResolutionSource.PATH,
            )

        return UNRESOLVED

    async def resolve(self, signals: ResolutionSignals) -> Resolution:
        """Resolve the tenant, including the non-production fallback."""
        resolution = self.resolve_signals(signals)
        if resolution.resolved or self._fallback is None:
            return resolution

        tenant_id = await self._fallback.pick()
        if tenant_id is None:
            return UNRESOLVED
        logger.debug("tenant_resolved_by_dev_fallback", fallback_tenant_id=tenant_id)
        return Resolution(tenant_id, ResolutionSource.DEVELOPMENT_FALLBACK)
