"""Persistence for audit records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_tenancy.errors import AuditWriteError
from restaurant_tenancy.storage.orm import AuditLog
from restaurant_tenancy.storage.scoping import scoping_engine
from restaurant_tenancy.tenancy.audit import AuditEntry
from restaurant_tenancy.tenancy.context import RequestContext


class SqlAuditStore:
    """``AuditStore`` writing each entry in its own transaction.

    Independent of the request's session, so an audit row survives a
    rollback of the audited operation.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, entry: AuditEntry) -> None:
        """Persist one entry.

        Raises:
            AuditWriteError: the database rejected the write.
        """
        async with self._session_factory() as session:
            session.add(
                AuditLog(
                    user_id=entry.actor_id,
                    restaurant_id=entry.tenant_id,
                    action=str(entry.action),
                    severity=str(entry.severity),
                    resource_type=entry.resource_type,
                    resource_id=entry.resource_id,
                    ip_address=entry.ip_address,
                    details=entry.details,
                    created_at=entry.created_at,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                raise AuditWriteError(str(exc)) from exc


class AuditRepository:
    """Read access to audit records.

    A tenant-bound context only sees records filed under its own tenant;
    an unbound one (super admin, no tenant) sees all of them.
    """

    def __init__(self, session: AsyncSession, ctx: RequestContext) -> None:
        self._session = session
        self._ctx = ctx

    def _filtered(
        self,
        stmt: Select[Any],
        *,
        actor_id: int | None,
        tenant_id: int | None,
        action: str | None,
        since: datetime | None,
        until: datetime | None,
    ) -> Select[Any]:
        stmt = scoping_engine.scope(AuditLog, stmt, self._ctx)
        if actor_id is not None:
            stmt = stmt.where(AuditLog.user_id == actor_id)
        if tenant_id is not None:
            stmt = stmt.where(AuditLog.restaurant_id == tenant_id)
        if action is not None:
            stmt = stmt.where(AuditLog.action == action)
        if since is not None:
            stmt = stmt.where(AuditLog.created_at >= since)
        if until is not None:
            stmt = stmt.where(AuditLog.created_at < until)
        return stmt

    async def search(
        self,
        *,
        actor_id: int | None = None,
        tenant_id: int | None = None,
        action: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        """Newest first."""
        stmt = self._filtered(
            select(AuditLog),
            actor_id=actor_id,
            tenant_id=tenant_id,
            action=action,
            since=since,
            until=until,
        )
        stmt = stmt.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(
        self,
        *,
        actor_id: int | None = None,
        tenant_id: int | None = None,
        action: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        matching = self._filtered(
            select(AuditLog.id),
            actor_id=actor_id,
            tenant_id=tenant_id,
            action=action,
            since=since,
            until=until,
        )
        result = await self._session.execute(
            select(func.count()).select_from(matching.subquery())
        )
        return result.scalar_one()
