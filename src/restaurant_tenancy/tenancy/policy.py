"""Declarative per-operation tenancy policy."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from enum import StrEnum


class OperationPolicy(StrEnum):
    """How an operation relates to tenants.

    REQUIRES_TENANT: default; the operation reads or writes tenant data.
    PUBLIC: anyone may call it, but only for a resolved tenant.
    GLOBAL: cross-tenant administration, no tenant needed.
    AUTHENTICATION: credential exchange, exempt from tenant checks.
    """

    REQUIRES_TENANT = "requires_tenant"
    PUBLIC = "public"
    GLOBAL = "global"
    AUTHENTICATION = "authentication"


@dataclass(frozen=True)
class Operation:
    """A named operation and the tenancy rules that apply to it."""

    name: str
    policy: OperationPolicy = OperationPolicy.REQUIRES_TENANT
    rate_limited: bool = True
    tenant_path_param: str | None = None

    @property
    def allows_tenantless(self) -> bool:
        return self.policy in (OperationPolicy.GLOBAL, OperationPolicy.AUTHENTICATION)

    @property
    def audited(self) -> bool:
        return self.policy != OperationPolicy.AUTHENTICATION


class OperationCatalog:
    """Apply configured overrides on top of route-declared operations."""

    def __init__(
        self,
        policy_overrides: Mapping[str, str] | None = None,
        rate_limit_exempt: Iterable[str] = (),
    ) -> None:
        self._overrides = {
            name: OperationPolicy(value)
            for name, value in (policy_overrides or {}).items()
        }
        self._exempt = frozenset(rate_limit_exempt)

    def effective(self, operation: Operation) -> Operation:
        policy = self._overrides.get(operation.name, operation.policy)
        rate_limited = operation.rate_limited and operation.name not in self._exempt
        if policy == operation.policy and rate_limited == operation.rate_limited:
            return operation
        return replace(operation, policy=policy, rate_limited=rate_limited)
