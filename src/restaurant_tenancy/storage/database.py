"""Database engine, session factory and the tenant-scoped session class."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session

from restaurant_tenancy.config import settings
from restaurant_tenancy.storage.scoping import scoping_engine


class TenantScopedSession(Session):
    """Session whose ORM statements are scoped to the active tenant."""


scoping_engine.install(TenantScopedSession)

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=False,
)

async_session = async_sessionmaker(
    engine,
    expire_on_commit=False,
    sync_session_class=TenantScopedSession,
)


async def get_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency yielding a scoped session per request."""
    async with async_session() as session:
        yield session
