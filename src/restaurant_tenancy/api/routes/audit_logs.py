"""Audit trail inspection endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_tenancy.api.deps import get_session, tenant_operation
from restaurant_tenancy.api.schemas import AuditLogListResponse, AuditLogResponse
from restaurant_tenancy.auth.actor import Role
from restaurant_tenancy.storage.audit_repository import AuditRepository
from restaurant_tenancy.tenancy.context import RequestContext
from restaurant_tenancy.tenancy.policy import OperationPolicy

router = APIRouter(tags=["admin"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AuditDep = Annotated[
    RequestContext,
    Depends(tenant_operation("audit_logs.list", OperationPolicy.GLOBAL)),
]


@router.get("/admin/audit_logs")
async def list_audit_logs(
    ctx: AuditDep,
    session: SessionDep,
    user_id: int | None = None,
    action: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AuditLogListResponse:
    """Search audit records.

    Super admins without a tenant see every record; restaurant admins see
    records filed under their own restaurant only.
    """
    if ctx.actor is None or not ctx.actor.has_role(Role.SUPER_ADMIN, Role.ADMIN):
        raise HTTPException(status_code=403, detail="Administrator role required")

    filters = {
        "actor_id": user_id,
        "action": action,
        "since": since,
        "until": until,
    }
    repo = AuditRepository(session, ctx)
    records = await repo.search(**filters, limit=limit, offset=offset)
    total = await repo.count(**filters)
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(r) for r in records],
        total=total,
        limit=limit,
        offset=offset,
    )
