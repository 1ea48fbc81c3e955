"""Access decision for an actor operating as a resolved tenant."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from restaurant_tenancy.errors import TenantAccessDeniedError
from restaurant_tenancy.tenancy.policy import Operation, OperationPolicy

if TYPE_CHECKING:
    from restaurant_tenancy.auth.actor import Actor
    from restaurant_tenancy.tenancy.audit import AuditLogger
    from restaurant_tenancy.tenancy.directory import TenantRecord

logger = structlog.get_logger()

DENIED_REASON = "You don't have permission to access this restaurant"
ORIGIN_DENIED_REASON = "Origin not allowed for this restaurant"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    rule: str
    reason: str | None = None
    target_tenant_id: int | None = None


class IsolationEnforcer:
    """Decide whether an actor may run an operation as a tenant.

    Rules, first match wins:

    1. no tenant + GLOBAL operation + privileged actor
    2. privileged actor (any tenant)
    3. path names a tenant other than the resolved one: deny
    4. actor belongs to the resolved tenant
    5. AUTHENTICATION operation
    6. PUBLIC operation with a resolved tenant (and an allowed Origin)
    7. deny
    """

    def __init__(self, audit: AuditLogger, *, privileged_role: str = "super_admin") -> None:
        self._audit = audit
        self._privileged_role = privileged_role

    def evaluate(
        self,
        tenant_id: int | None,
        actor: Actor | None,
        operation: Operation,
        *,
        tenant: TenantRecord | None = None,
        origin: str | None = None,
        path_tenant_id: int | None = None,
    ) -> AccessDecision:
        """Apply the rules without side effects."""
        privileged = actor is not None and actor.role == self._privileged_role

        if tenant_id is None and operation.policy == OperationPolicy.GLOBAL and privileged:
            return AccessDecision(True, "privileged_global")
        if privileged:
            return AccessDecision(True, "privileged")
        if path_tenant_id is not None and path_tenant_id != tenant_id:
            return AccessDecision(
                False,
                "path_tenant_mismatch",
                DENIED_REASON,
                target_tenant_id=path_tenant_id,
            )
        if (
            tenant_id is not None
            and actor is not None
            and actor.tenant_id is not None
            and actor.tenant_id == tenant_id
        ):
            return AccessDecision(True, "own_tenant")
        if operation.policy == OperationPolicy.AUTHENTICATION:
            return AccessDecision(True, "authentication")
        if operation.policy == OperationPolicy.PUBLIC and tenant_id is not None:
            if origin and tenant is not None and not tenant.allows_origin(origin):
                return AccessDecision(False, "origin_not_allowed", ORIGIN_DENIED_REASON)
            return AccessDecision(True, "public")
        return AccessDecision(False, "default_deny", DENIED_REASON)

    async def validate(
        self,
        tenant_id: int | None,
        actor: Actor | None,
        operation: Operation,
        *,
        tenant: TenantRecord | None = None,
        origin: str | None = None,
        path_tenant_id: int | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AccessDecision:
        """Evaluate, audit, and raise on denial.

        Raises:
            TenantAccessDeniedError: no rule allowed the operation. Exactly
                one cross-tenant attempt has been recorded by then.
        """
        decision = self.evaluate(
            tenant_id,
            actor,
            operation,
            tenant=tenant,
            origin=origin,
            path_tenant_id=path_tenant_id,
        )
        extra = {**(details or {}), "rule": decision.rule}
        if origin:
            extra["origin"] = origin

        if operation.audited:
            await self._audit.record_access(
                actor=actor,
                tenant_id=tenant_id,
                operation=operation.name,
                allowed=decision.allowed,
                ip_address=ip_address,
                details=extra,
            )

        if decision.allowed:
            return decision

        target_tenant_id = (
            decision.target_tenant_id
            if decision.target_tenant_id is not None
            else tenant_id
        )
        logger.info(
            "tenant_access_denied",
            operation=operation.name,
            target_tenant_id=target_tenant_id,
            rule=decision.rule,
        )
        await self._audit.record_cross_tenant_attempt(
            actor=actor,
            target_tenant_id=target_tenant_id,
            operation=operation.name,
            ip_address=ip_address,
            details=extra,
        )
        raise TenantAccessDeniedError(decision.reason or DENIED_REASON)
