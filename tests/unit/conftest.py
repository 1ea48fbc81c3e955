"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from restaurant_tenancy.tenancy.audit import AuditLogger
from restaurant_tenancy.tenancy.enforcer import IsolationEnforcer
from restaurant_tenancy.tenancy.guard import TenantGuard
from restaurant_tenancy.tenancy.rate_limiter import TenantRateLimiter
from restaurant_tenancy.tenancy.resolver import TenantResolver
from tests.unit.fakes import (
    ALPHA,
    BETA,
    CLOSED,
    FakeRedis,
    FrozenClock,
    RecordingAuditStore,
    StaticTenantDirectory,
)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def audit_store() -> RecordingAuditStore:
    return RecordingAuditStore()


@pytest.fixture()
def directory() -> StaticTenantDirectory:
    return StaticTenantDirectory(ALPHA, BETA, CLOSED)


@pytest.fixture()
def metrics() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def audit_logger(audit_store: RecordingAuditStore, metrics: MagicMock) -> AuditLogger:
    return AuditLogger(audit_store, metrics=metrics, timeout_seconds=0.5)


@pytest.fixture()
def enforcer(audit_logger: AuditLogger) -> IsolationEnforcer:
    return IsolationEnforcer(audit_logger)


@pytest.fixture()
def rate_limiter(fake_redis: FakeRedis, clock: FrozenClock) -> TenantRateLimiter:
    return TenantRateLimiter(fake_redis, window_seconds=60, max_requests=3, clock=clock)  # type: ignore[arg-type]


@pytest.fixture()
def guard_factory(
    enforcer: IsolationEnforcer,
    rate_limiter: TenantRateLimiter,
    directory: StaticTenantDirectory,
    metrics: MagicMock,
) -> Any:
    def _make(**overrides: Any) -> TenantGuard:
        kwargs: dict[str, Any] = {
            "resolver": TenantResolver(),
            "enforcer": enforcer,
            "rate_limiter": rate_limiter,
            "directory": directory,
            "metrics": metrics,
        }
        kwargs.update(overrides)
        return TenantGuard(**kwargs)

    return _make


@pytest.fixture()
def guard(guard_factory: Any) -> TenantGuard:
    return guard_factory()
