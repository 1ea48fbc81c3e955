"""Shared fixtures for integration tests requiring live infrastructure."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator

import pytest
from redis.asyncio import Redis
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from restaurant_tenancy.config import get_settings
from restaurant_tenancy.storage.database import TenantScopedSession
from restaurant_tenancy.storage.orm import (
    AuditLog,
    Menu,
    MenuItem,
    OptionGroup,
    Order,
    OrderPayment,
    Restaurant,
)

# ── Engine (module-scoped, shared across test module) ──────────────


@pytest.fixture(scope="module")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async engine from settings (module-scoped)."""
    engine = create_async_engine(
        get_settings().database_url,
        pool_size=5,
        max_overflow=0,
    )
    yield engine
    await engine.dispose()


# ── Session factories ──────────────────────────────────────────────


@pytest.fixture()
def session_factory(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Tenant-scoped sessions, as the application uses them."""
    return async_sessionmaker(
        async_engine,
        expire_on_commit=False,
        sync_session_class=TenantScopedSession,
    )


@pytest.fixture()
def admin_session_factory(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Plain sessions for seeding and cleanup."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


# ── Committed seeds (real commit + DELETE cleanup) ─────────────────


@pytest.fixture()
async def two_restaurants(
    admin_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[tuple[int, int]]:
    """Create two restaurants, each with a menu chain and a paid order.

    Returns the two restaurant ids. Cleans up after the test; child rows
    go with the restaurants through ON DELETE CASCADE.
    """
    suffix = uuid.uuid4().hex[:8]
    async with admin_session_factory() as session:
        ids: list[int] = []
        for label in ("alpha", "beta"):
            restaurant = Restaurant(name=f"{label}-{suffix}")
            session.add(restaurant)
            await session.flush()

            menu = Menu(restaurant_id=restaurant.id, name=f"{label}-menu")
            item = MenuItem(name=f"{label}-item", price_cents=900)
            item.option_groups.append(OptionGroup(name=f"{label}-sauces"))
            menu.items.append(item)
            order = Order(restaurant_id=restaurant.id, total_cents=900)
            order.payments.append(OrderPayment(amount_cents=900))
            session.add_all([menu, order])
            ids.append(restaurant.id)
        await session.commit()

    yield ids[0], ids[1]

    async with admin_session_factory() as session:
        await session.execute(delete(AuditLog).where(AuditLog.restaurant_id.in_(ids)))
        await session.execute(delete(Restaurant).where(Restaurant.id.in_(ids)))
        await session.commit()


# ── Redis ──────────────────────────────────────────────────────────


@pytest.fixture()
async def redis_client() -> AsyncGenerator[Redis]:
    client = Redis.from_url(get_settings().redis_url)
    yield client
    await client.aclose()
