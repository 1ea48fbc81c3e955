"""Tests for FastAPI bootstrap: health, routing, error handling, lifespan."""

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from typing import NamedTuple
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from restaurant_tenancy.api.app import app
from restaurant_tenancy.storage.database import get_session
from restaurant_tenancy.tenancy.guard import TenantGuard


class HealthMocks(NamedTuple):
    """Mocks returned by mock_health_deps context manager."""

    db_session: AsyncMock
    redis: AsyncMock


@contextmanager
def mock_health_deps(
    *,
    db_error: Exception | None = None,
    redis_error: Exception | None = None,
) -> Generator[HealthMocks]:
    """Mock DB and Redis dependencies for health check tests.

    Args:
        db_error: If set, async_session __aenter__ raises this exception.
        redis_error: If set, redis.ping raises this exception.
    """
    mock_redis = AsyncMock()
    if redis_error:
        mock_redis.ping = AsyncMock(side_effect=redis_error)
    else:
        mock_redis.ping = AsyncMock(return_value=True)

    mock_db_session = AsyncMock()
    mock_db_session.execute = AsyncMock()

    with patch("restaurant_tenancy.api.app.async_session") as mock_session_factory:
        if db_error:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                side_effect=db_error
            )
        else:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                return_value=mock_db_session
            )
        mock_session_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        app.state.redis = mock_redis

        yield HealthMocks(db_session=mock_db_session, redis=mock_redis)


@pytest.fixture()
async def client(guard: TenantGuard) -> AsyncGenerator[AsyncClient]:
    """AsyncClient that skips the real DB and Redis."""
    app.state.tenant_guard = guard
    app.dependency_overrides[get_session] = lambda: AsyncMock()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health_all_ok(self, client: AsyncClient) -> None:
        """GET /health returns 200 when DB and Redis are reachable."""
        with mock_health_deps():
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"] == {"db": "ok", "redis": "ok"}
        assert "timestamp" in data

    async def test_health_db_down(self, client: AsyncClient) -> None:
        """GET /health returns 503 when DB is unreachable."""
        with mock_health_deps(db_error=TimeoutError("db timeout")):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert "error" in data["checks"]["db"]
        assert data["checks"]["redis"] == "ok"

    async def test_health_redis_down(self, client: AsyncClient) -> None:
        """GET /health returns 503 when Redis is unreachable."""
        with mock_health_deps(redis_error=RedisConnectionError("redis down")):
            response = await client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["checks"]["db"] == "ok"
        assert data["checks"]["redis"] == "error: ConnectionError"

    async def test_health_needs_no_tenant(self, client: AsyncClient) -> None:
        """GET /health is not a tenant operation."""
        with mock_health_deps():
            response = await client.get("/health")
        assert response.status_code == 200

    async def test_health_method_not_allowed(self, client: AsyncClient) -> None:
        response = await client.post("/health")
        assert response.status_code == 405


class TestRouting:
    async def test_unknown_route_returns_404(self, client: AsyncClient) -> None:
        response = await client.get("/nonexistent")
        assert response.status_code == 404

    async def test_metrics_endpoint(self, client: AsyncClient) -> None:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "tenant_request_latency_seconds" in response.text


class TestErrorHandling:
    async def test_unhandled_exception_handler_returns_500(self) -> None:
        """Global exception handler returns 500 JSON response."""
        from restaurant_tenancy.api.app import unhandled_exception_handler

        mock_request = Request(
            scope={"type": "http", "method": "GET", "path": "/test", "headers": []}
        )
        response = await unhandled_exception_handler(mock_request, RuntimeError("boom"))
        assert response.status_code == 500
        assert response.body == b'{"detail":"Internal server error"}'


class TestLifespan:
    @contextmanager
    def _patched(self) -> Generator[MagicMock]:
        with (
            patch("restaurant_tenancy.api.app.engine") as mock_engine,
            patch("restaurant_tenancy.api.app.Redis") as mock_redis_cls,
            patch("restaurant_tenancy.api.app.validate_scoping", return_value=[]),
        ):
            mock_engine.dispose = AsyncMock()
            mock_redis_cls.from_url.return_value = AsyncMock()
            yield mock_engine

    async def test_lifespan_builds_tenant_guard(self) -> None:
        from restaurant_tenancy.api.app import lifespan

        with self._patched():
            async with lifespan(app):
                assert isinstance(app.state.tenant_guard, TenantGuard)

    async def test_lifespan_closes_resources(self) -> None:
        from restaurant_tenancy.api.app import lifespan

        with self._patched() as mock_engine:
            async with lifespan(app):
                redis = app.state.redis
            mock_engine.dispose.assert_awaited_once()
            redis.aclose.assert_awaited_once()

    async def test_lifespan_warns_on_scoping_gaps(self) -> None:
        from restaurant_tenancy.api.app import lifespan

        class Unscoped:
            pass

        with (
            self._patched(),
            patch(
                "restaurant_tenancy.api.app.validate_scoping", return_value=[Unscoped]
            ),
            patch("restaurant_tenancy.api.app.logger") as mock_logger,
        ):
            async with lifespan(app):
                pass
        mock_logger.warning.assert_called_once_with(
            "tenant_scoping_gaps", entities=["Unscoped"]
        )
