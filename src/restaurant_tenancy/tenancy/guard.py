"""Per-operation orchestration of the tenancy layer.

``TenantGuard.operation()`` wraps one inbound operation:

    signals -> resolve -> bind context -> enforce -> rate limit
    -> business logic -> context cleared

It is framework-agnostic; ``api.deps.tenant_operation`` adapts it to a
FastAPI dependency.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from restaurant_tenancy.errors import RateLimitExceededError, TenantUnresolvedError
from restaurant_tenancy.tenancy.context import RequestContext, request_context
from restaurant_tenancy.tenancy.policy import Operation, OperationCatalog
from restaurant_tenancy.tenancy.resolver import parse_tenant_id

if TYPE_CHECKING:
    from restaurant_tenancy.tenancy.directory import TenantDirectory
    from restaurant_tenancy.tenancy.enforcer import IsolationEnforcer
    from restaurant_tenancy.tenancy.metrics import MetricsSink
    from restaurant_tenancy.tenancy.rate_limiter import TenantRateLimiter
    from restaurant_tenancy.tenancy.resolver import ResolutionSignals, TenantResolver

logger = structlog.get_logger()

UNKNOWN_TENANT_REASON = "Restaurant not found"


def _path_tenant(signals: ResolutionSignals) -> int | None:
    """Tenant the route path targets, whichever signal won resolution."""
    raw = signals.path_tenant_id
    if raw is None or raw.strip() == "":
        return None
    return parse_tenant_id(raw)


@dataclass(frozen=True)
class OperationRequest:
    """Everything the guard needs to know about one inbound operation."""

    signals: ResolutionSignals
    ip_address: str | None = None
    origin: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class TenantGuard:
    def __init__(
        self,
        *,
        resolver: TenantResolver,
        enforcer: IsolationEnforcer,
        rate_limiter: TenantRateLimiter,
        directory: TenantDirectory,
        catalog: OperationCatalog | None = None,
        metrics: MetricsSink | None = None,
    ) -> None:
        self._resolver = resolver
        self._enforcer = enforcer
        self._rate_limiter = rate_limiter
        self._directory = directory
        self._catalog = catalog or OperationCatalog()
        self._metrics = metrics

    def effective(self, operation: Operation) -> Operation:
        return self._catalog.effective(operation)

    @asynccontextmanager
    async def operation(
        self,
        declared: Operation,
        request: OperationRequest,
    ) -> AsyncIterator[RequestContext]:
        """Admit an operation and keep its context bound while it runs.

        Raises:
            TenantUnresolvedError: tenant required but absent, malformed,
                or unknown.
            TenantAccessDeniedError: enforcer denied the operation.
            RateLimitExceededError: tenant is over budget.
        """
        operation = self.effective(declared)
        actor = request.signals.actor
        with request_context(actor=actor, operation=operation.name) as ctx:
            await self._admit(ctx, operation, request)
            yield ctx

    async def _admit(
        self,
        ctx: RequestContext,
        operation: Operation,
        request: OperationRequest,
    ) -> None:
        actor = request.signals.actor
        resolution = await self._resolver.resolve(request.signals)
        tenant_id = resolution.tenant_id
        path_tenant_id = _path_tenant(request.signals)

        if tenant_id is None:
            if not operation.allows_tenantless:
                raise TenantUnresolvedError()
            ctx.mark_unbound(resolution.source)
            tenant = None
        else:
            ctx.bind(tenant_id, resolution.source)
            tenant = await self._directory.get(tenant_id)

        await self._enforcer.validate(
            tenant_id,
            actor,
            operation,
            tenant=tenant,
            origin=request.origin,
            path_tenant_id=path_tenant_id,
            ip_address=request.ip_address,
            details=request.details,
        )

        # Checked after enforcement so a denied caller cannot discover which
        # tenant ids exist.
        if tenant_id is not None and (tenant is None or not tenant.is_active):
            raise TenantUnresolvedError(UNKNOWN_TENANT_REASON)

        if not operation.rate_limited or actor is None or tenant_id is None:
            return
        allowed = await self._rate_limiter.check_and_increment(tenant_id)
        if not allowed:
            if self._metrics is not None:
                self._metrics.record_rate_limited(tenant_id)
            retry_after = self._rate_limiter.seconds_until_reset()
            logger.warning(
                "tenant_rate_limited",
                operation=operation.name,
                retry_after=retry_after,
            )
            raise RateLimitExceededError(tenant_id, retry_after)
