"""Tenant resolution, request context, isolation enforcement and scoping."""

from restaurant_tenancy.tenancy.context import (
    ContextState,
    RequestContext,
    current_context,
    current_tenant,
    request_context,
    require_tenant,
)
from restaurant_tenancy.tenancy.policy import Operation, OperationPolicy
from restaurant_tenancy.tenancy.registry import Direct, Indirect, ScopablePathRegistry
from restaurant_tenancy.tenancy.resolver import (
    Resolution,
    ResolutionSignals,
    ResolutionSource,
    TenantResolver,
)
from restaurant_tenancy.tenancy.scoping import ScopingEngine

__all__ = [
    "ContextState",
    "Direct",
    "Indirect",
    "Operation",
    "OperationPolicy",
    "RequestContext",
    "Resolution",
    "ResolutionSignals",
    "ResolutionSource",
    "ScopablePathRegistry",
    "ScopingEngine",
    "TenantResolver",
    "current_context",
    "current_tenant",
    "request_context",
    "require_tenant",
]
