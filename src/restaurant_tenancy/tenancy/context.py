"""Per-operation request context and its lifecycle.

A ``RequestContext`` is created when an operation starts, moves through
``RESOLVING`` into exactly one of ``BOUND`` (tenant known) or ``UNBOUND``
(approved tenant-less operation), and is ``CLEARED`` on every exit path.

The active context lives in a ``ContextVar``, so it is local to the asyncio
task or thread running the operation. ``request_context()`` resets the
variable in a ``finally`` block, which is what keeps a pooled worker from
carrying a stale tenant into the next, unrelated operation.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from restaurant_tenancy.errors import (
    ContextTransitionError,
    TenantContextMissingError,
    TenantUnresolvedError,
)

if TYPE_CHECKING:
    from restaurant_tenancy.auth.actor import Actor
    from restaurant_tenancy.tenancy.resolver import ResolutionSource

_LOG_KEYS = ("tenant_id", "actor_id", "resolution_source", "operation")


class ContextState(StrEnum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    BOUND = "bound"
    UNBOUND = "unbound"
    CLEARED = "cleared"


class RequestContext:
    """Tenant, actor and bookkeeping for one in-flight operation.

    The tenant can be set exactly once; any further ``bind`` or
    ``mark_unbound`` raises ``ContextTransitionError``.
    """

    __slots__ = ("_state", "_tenant_id", "_source", "actor", "operation", "created_at")

    def __init__(
        self,
        *,
        actor: Actor | None = None,
        operation: str | None = None,
    ) -> None:
        self._state = ContextState.UNINITIALIZED
        self._tenant_id: int | None = None
        self._source: ResolutionSource | None = None
        self.actor = actor
        self.operation = operation
        self.created_at = datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"RequestContext(state={self._state.value}, tenant={self._tenant_id!r}, "
            f"actor={self.actor.id if self.actor else None!r})"
        )

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def tenant_id(self) -> int | None:
        return self._tenant_id

    @property
    def source(self) -> ResolutionSource | None:
        return self._source

    @property
    def is_bound(self) -> bool:
        return self._state == ContextState.BOUND

    @property
    def is_unbound(self) -> bool:
        return self._state == ContextState.UNBOUND

    def begin_resolving(self) -> None:
        self._transition(ContextState.UNINITIALIZED, ContextState.RESOLVING)

    def bind(self, tenant_id: int, source: ResolutionSource) -> None:
        """Bind the resolved tenant. Only legal once, while resolving."""
        self._transition(ContextState.RESOLVING, ContextState.BOUND)
        self._tenant_id = tenant_id
        self._source = source
        structlog.contextvars.bind_contextvars(
            tenant_id=tenant_id,
            resolution_source=str(source),
        )

    def mark_unbound(self, source: ResolutionSource) -> None:
        """Settle as a tenant-less operation."""
        self._transition(ContextState.RESOLVING, ContextState.UNBOUND)
        self._source = source
        structlog.contextvars.bind_contextvars(resolution_source=str(source))

    def clear(self) -> None:
        """Tear down. Idempotent; valid from every state."""
        self._state = ContextState.CLEARED
        self._tenant_id = None

    def _transition(self, expected: ContextState, target: ContextState) -> None:
        if self._state != expected:
            raise ContextTransitionError(
                f"Cannot move request context from {self._state.value} "
                f"to {target.value}"
            )
        self._state = target


_current: ContextVar[RequestContext | None] = ContextVar(
    "restaurant_tenancy_request_context", default=None
)


def current_context() -> RequestContext | None:
    """Return the context of the operation running on this worker, if any."""
    return _current.get()


def current_state() -> ContextState:
    ctx = _current.get()
    return ctx.state if ctx is not None else ContextState.UNINITIALIZED


def current_tenant(ctx: RequestContext | None = None) -> int | None:
    """Read-only accessor for the bound tenant (None unless BOUND).

    Reads ``ctx`` when given, the ambient context otherwise.
    """
    if ctx is None:
        ctx = _current.get()
    if ctx is None or not ctx.is_bound:
        return None
    return ctx.tenant_id


def require_tenant(ctx: RequestContext | None = None) -> int:
    """Return the bound tenant of ``ctx`` (or the ambient context) or fail fast.

    Raises:
        TenantUnresolvedError: the operation was approved as tenant-less.
        TenantContextMissingError: no context has been bound yet.
    """
    if ctx is None:
        ctx = _current.get()
    if ctx is not None and ctx.is_bound and ctx.tenant_id is not None:
        return ctx.tenant_id
    if ctx is not None and ctx.is_unbound:
        raise TenantUnresolvedError()
    state = ctx.state if ctx is not None else ContextState.UNINITIALIZED
    raise TenantContextMissingError(
        f"Tenant required but request context is {state.value}"
    )


@contextmanager
def request_context(
    *,
    actor: Actor | None = None,
    operation: str | None = None,
) -> Iterator[RequestContext]:
    """Open a context for one operation and clear it on every exit path.

    Nesting is refused: a live context on this worker means a previous
    operation was not torn down, and continuing could inherit its tenant.

    Usage::

        with request_context(actor=actor, operation="orders.list") as ctx:
            resolution = await resolver.resolve(signals)
            ctx.bind(resolution.tenant_id, resolution.source)
            ...
    """
    previous = _current.get()
    if previous is not None and previous.state != ContextState.CLEARED:
        raise ContextTransitionError(
            "A request context is already active on this worker"
        )

    ctx = RequestContext(actor=actor, operation=operation)
    token = _current.set(ctx)
    structlog.contextvars.bind_contextvars(
        actor_id=actor.id if actor is not None else None,
        operation=operation,
    )
    try:
        ctx.begin_resolving()
        yield ctx
    finally:
        ctx.clear()
        structlog.contextvars.unbind_contextvars(*_LOG_KEYS)
        try:
            _current.reset(token)
        except ValueError:
            # Exited from a different Context than it was entered in.
            _current.set(None)
