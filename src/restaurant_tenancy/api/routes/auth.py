"""Credential exchange endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from restaurant_tenancy.api.deps import tenant_operation
from restaurant_tenancy.auth.tokens import issue_access_token
from restaurant_tenancy.config import Settings, get_settings
from restaurant_tenancy.tenancy.context import RequestContext
from restaurant_tenancy.tenancy.policy import OperationPolicy

router = APIRouter(tags=["auth"])

RefreshDep = Annotated[
    RequestContext,
    Depends(
        tenant_operation(
            "auth.refresh", OperationPolicy.AUTHENTICATION, rate_limited=False
        )
    ),
]
SettingsDep = Annotated[Settings, Depends(get_settings)]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("/auth/refresh")
async def refresh_token(ctx: RefreshDep, settings: SettingsDep) -> TokenResponse:
    """Exchange a valid access token for a fresh one."""
    if ctx.actor is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    token = issue_access_token(
        ctx.actor,
        secret=settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.access_token_ttl_seconds,
    )
    return TokenResponse(access_token=token, expires_in=settings.access_token_ttl_seconds)
