"""Domain-specific exceptions for tenant resolution and isolation."""

from __future__ import annotations


class TenancyError(Exception):
    """Base class for all tenancy-layer errors."""


class TenantUnresolvedError(TenancyError):
    """No signal produced a tenant and the operation needs one."""

    def __init__(self, reason: str = "Restaurant context is required") -> None:
        self.reason = reason
        super().__init__(reason)


class TenantAccessDeniedError(TenancyError):
    """The actor may not operate as the resolved tenant."""

    def __init__(
        self, reason: str = "You don't have permission to access this restaurant"
    ) -> None:
        self.reason = reason
        super().__init__(reason)


class TenantContextMissingError(TenancyError):
    """A scoped query ran while no tenant context was bound.

    This is a defect in calling code. It is never translated into a
    client error: the operation is aborted.
    """


class ContextTransitionError(TenancyError):
    """Illegal RequestContext state transition (e.g. binding twice)."""


class ScopingConfigurationError(TenancyError):
    """Scopable path metadata is missing or does not match the ORM."""


class RateLimitExceededError(TenancyError):
    """Tenant exceeded its request budget for the current window."""

    def __init__(self, tenant_id: int, retry_after: int) -> None:
        self.tenant_id = tenant_id
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for tenant {tenant_id}")


class AuditWriteError(TenancyError):
    """Audit store rejected a record. Internal only, never propagated."""
