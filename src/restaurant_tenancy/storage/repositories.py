"""Tenant-scoped repositories for restaurant data.

Every repository receives the operation's ``RequestContext`` and scopes
its statements explicitly through ``scoping_engine``; the session-level
listener adds the same criteria to anything a repository misses.
"""

from __future__ import annotations

from typing import Any, ClassVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_tenancy.storage.orm import (
    Menu,
    MenuItem,
    OptionGroup,
    Order,
    OrderPayment,
    Reservation,
    Restaurant,
)
from restaurant_tenancy.storage.scoping import scoping_engine
from restaurant_tenancy.tenancy.context import RequestContext, require_tenant


class RestaurantRepository:
    """Access to the tenant table itself (not tenant-scoped)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, restaurant_id: int) -> Restaurant | None:
        return await self._session.get(Restaurant, restaurant_id)

    async def list_all(self, *, limit: int = 50, offset: int = 0) -> list[Restaurant]:
        stmt = select(Restaurant).order_by(Restaurant.id).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class _ScopedRepository:
    model: ClassVar[type[Any]]

    def __init__(self, session: AsyncSession, ctx: RequestContext) -> None:
        self._session = session
        self._ctx = ctx

    def _select(self) -> Any:
        return scoping_engine.scope(self.model, select(self.model), self._ctx)

    def _tenant_id(self) -> int:
        return require_tenant(self._ctx)

    async def get_by_id(self, record_id: int) -> Any | None:
        """Get by primary key, scoped to the bound tenant.

        Returns None both for missing rows and for other tenants' rows.
        """
        stmt = self._select().where(self.model.id == record_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self, *, limit: int = 50, offset: int = 0) -> list[Any]:
        stmt = self._select().order_by(self.model.id).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        matching = self._select().with_only_columns(self.model.id)
        result = await self._session.execute(
            select(func.count()).select_from(matching.subquery())
        )
        return result.scalar_one()


class MenuRepository(_ScopedRepository):
    model = Menu

    async def create(self, *, name: str) -> Menu:
        menu = Menu(restaurant_id=self._tenant_id(), name=name)
        self._session.add(menu)
        await self._session.flush()
        return menu


class MenuItemRepository(_ScopedRepository):
    model = MenuItem

    async def list_for_menu(self, menu_id: int) -> list[MenuItem]:
        stmt = self._select().where(MenuItem.menu_id == menu_id).order_by(MenuItem.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class OptionGroupRepository(_ScopedRepository):
    model = OptionGroup

    async def list_for_item(self, menu_item_id: int) -> list[OptionGroup]:
        stmt = (
            self._select()
            .where(OptionGroup.menu_item_id == menu_item_id)
            .order_by(OptionGroup.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class OrderRepository(_ScopedRepository):
    model = Order

    async def create(self, *, user_id: int | None, total_cents: int) -> Order:
        """Create an order owned by the bound tenant."""
        order = Order(
            restaurant_id=self._tenant_id(),
            user_id=user_id,
            total_cents=total_cents,
        )
        self._session.add(order)
        await self._session.flush()
        return order


class OrderPaymentRepository(_ScopedRepository):
    model = OrderPayment

    async def list_for_order(self, order_id: int) -> list[OrderPayment]:
        stmt = (
            self._select()
            .where(OrderPayment.order_id == order_id)
            .order_by(OrderPayment.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ReservationRepository(_ScopedRepository):
    model = Reservation
