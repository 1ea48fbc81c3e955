"""Tenant lookups backed by the ``restaurants`` table."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restaurant_tenancy.storage.orm import Restaurant
from restaurant_tenancy.tenancy.directory import TenantRecord


def to_record(restaurant: Restaurant) -> TenantRecord:
    return TenantRecord(
        id=restaurant.id,
        name=restaurant.name,
        allowed_origins=tuple(restaurant.allowed_origins or ()),
        is_active=restaurant.is_active,
        settings=dict(restaurant.settings or {}),
    )


class SqlTenantDirectory:
    """Read-only ``TenantDirectory`` using a short-lived session per lookup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, tenant_id: int) -> TenantRecord | None:
        async with self._session_factory() as session:
            restaurant = await session.get(Restaurant, tenant_id)
            return to_record(restaurant) if restaurant is not None else None

    async def any_tenant_id(self) -> int | None:
        stmt = (
            select(Restaurant.id)
            .where(Restaurant.is_active.is_(True))
            .order_by(Restaurant.id)
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
