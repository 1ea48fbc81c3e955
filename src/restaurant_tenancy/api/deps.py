"""FastAPI dependency injection."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any, cast

import jwt
import structlog
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from restaurant_tenancy.auth.actor import Actor
from restaurant_tenancy.auth.tokens import decode_access_token
from restaurant_tenancy.config import Settings, get_settings
from restaurant_tenancy.storage.database import get_session
from restaurant_tenancy.tenancy.context import RequestContext
from restaurant_tenancy.tenancy.guard import OperationRequest, TenantGuard
from restaurant_tenancy.tenancy.policy import Operation, OperationPolicy
from restaurant_tenancy.tenancy.resolver import ResolutionSignals

__all__ = [
    "build_signals",
    "get_current_actor",
    "get_session",
    "get_tenant_guard",
    "tenant_operation",
]

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)

_bearer = Security(bearer_scheme)
_get_settings = Depends(get_settings)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = _bearer,
    settings: Settings = _get_settings,
) -> Actor | None:
    """Verify the bearer token, if any, into an ``Actor``.

    No token means an anonymous caller; whether that is acceptable is
    decided by the operation's policy.

    Raises:
        HTTPException 401: token present but invalid or expired.
    """
    if credentials is None:
        return None
    try:
        return decode_access_token(
            credentials.credentials,
            secret=settings.jwt_secret.get_secret_value(),
            algorithm=settings.jwt_algorithm,
        )
    except jwt.InvalidTokenError as exc:
        logger.info("invalid_access_token", error_type=type(exc).__name__)
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc


async def get_tenant_guard(request: Request) -> TenantGuard:
    """Retrieve TenantGuard from app state.

    Initialized during lifespan startup.
    """
    return cast(TenantGuard, request.app.state.tenant_guard)


def build_signals(
    request: Request,
    actor: Actor | None,
    settings: Settings,
    tenant_path_param: str | None = None,
) -> ResolutionSignals:
    """Collect raw tenant signals from the request."""
    tenant_param = None
    for name in settings.tenant_param_names:
        value = request.query_params.get(name)
        if value:
            tenant_param = value
            break

    path_tenant_id = None
    if tenant_path_param is not None:
        raw = request.path_params.get(tenant_path_param)
        path_tenant_id = str(raw) if raw is not None else None

    return ResolutionSignals(
        frontend_id=request.headers.get(settings.frontend_id_header),
        frontend_tenant_id=request.headers.get(settings.frontend_tenant_header),
        tenant_param=tenant_param,
        path_tenant_id=path_tenant_id,
        actor=actor,
    )


_actor_dep = Depends(get_current_actor)
_guard_dep = Depends(get_tenant_guard)


def tenant_operation(
    name: str,
    policy: OperationPolicy = OperationPolicy.REQUIRES_TENANT,
    *,
    rate_limited: bool = True,
    tenant_path_param: str | None = None,
) -> Callable[..., AsyncIterator[RequestContext]]:
    """Dependency factory: run the endpoint as a tenancy-guarded operation.

    Usage as parameter dependency (yields the bound RequestContext)::

        OrdersDep = Annotated[
            RequestContext, Depends(tenant_operation("orders.list"))
        ]

        async def endpoint(ctx: OrdersDep): ...

    The context is cleared when the response has been produced, whether
    the endpoint returned or raised.
    """
    declared = Operation(
        name=name,
        policy=policy,
        rate_limited=rate_limited,
        tenant_path_param=tenant_path_param,
    )

    async def _guarded(
        request: Request,
        actor: Actor | None = _actor_dep,
        guard: TenantGuard = _guard_dep,
        settings: Settings = _get_settings,
    ) -> AsyncIterator[RequestContext]:
        details: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
        }
        op_request = OperationRequest(
            signals=build_signals(request, actor, settings, tenant_path_param),
            ip_address=request.client.host if request.client else None,
            origin=request.headers.get("origin"),
            details=details,
        )
        async with guard.operation(declared, op_request) as ctx:
            request.state.tenant_id = ctx.tenant_id
            yield ctx

    return _guarded
