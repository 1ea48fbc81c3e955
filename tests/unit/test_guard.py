"""Tests for the per-operation tenant guard."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from restaurant_tenancy.auth.actor import Actor
from restaurant_tenancy.errors import (
    RateLimitExceededError,
    TenantAccessDeniedError,
    TenantUnresolvedError,
)
from restaurant_tenancy.tenancy.audit import AuditAction
from restaurant_tenancy.tenancy.context import ContextState, current_context
from restaurant_tenancy.tenancy.guard import OperationRequest, TenantGuard
from restaurant_tenancy.tenancy.policy import (
    Operation,
    OperationCatalog,
    OperationPolicy,
)
from restaurant_tenancy.tenancy.resolver import ResolutionSignals, ResolutionSource
from tests.unit.fakes import FakeRedis, RecordingAuditStore

SUPER_ADMIN = Actor(id=1, role="super_admin")
STAFF_OF_1 = Actor(id=2, role="staff", tenant_id=1)
STAFF_OF_3 = Actor(id=4, role="staff", tenant_id=3)
STAFF_OF_99 = Actor(id=5, role="staff", tenant_id=99)

ORDERS = Operation("orders.list")
MENUS = Operation("menus.list", OperationPolicy.PUBLIC)
RESTAURANTS = Operation("restaurants.list", OperationPolicy.GLOBAL)
REFRESH = Operation("auth.refresh", OperationPolicy.AUTHENTICATION, rate_limited=False)
RESTAURANT_UPDATE = Operation("restaurants.update", tenant_path_param="restaurant_id")
RESTAURANT_SHOW = Operation(
    "restaurants.show", OperationPolicy.PUBLIC, tenant_path_param="restaurant_id"
)


def _request(actor: Actor | None = None, **signals: Any) -> OperationRequest:
    return OperationRequest(
        signals=ResolutionSignals(actor=actor, **signals),
        ip_address="192.0.2.1",
    )


class TestAdmission:
    async def test_binds_actor_tenant(self, guard: TenantGuard) -> None:
        async with guard.operation(ORDERS, _request(STAFF_OF_1)) as ctx:
            assert ctx.state == ContextState.BOUND
            assert ctx.tenant_id == 1
            assert ctx.source == ResolutionSource.ACTOR
            assert current_context() is ctx
        assert ctx.state == ContextState.CLEARED

    async def test_super_admin_global_is_unbound(self, guard: TenantGuard) -> None:
        async with guard.operation(RESTAURANTS, _request(SUPER_ADMIN)) as ctx:
            assert ctx.state == ContextState.UNBOUND
            assert ctx.tenant_id is None

    async def test_super_admin_override_param(self, guard: TenantGuard) -> None:
        """Super admin acting as another restaurant."""
        async with guard.operation(
            ORDERS, _request(SUPER_ADMIN, tenant_param="2")
        ) as ctx:
            assert ctx.tenant_id == 2
            assert ctx.source == ResolutionSource.PARAMETER

    async def test_anonymous_public_with_path_tenant(self, guard: TenantGuard) -> None:
        async with guard.operation(MENUS, _request(path_tenant_id="1")) as ctx:
            assert ctx.tenant_id == 1

    async def test_authentication_without_tenant(
        self, guard: TenantGuard, audit_store: RecordingAuditStore
    ) -> None:
        async with guard.operation(REFRESH, _request(STAFF_OF_1)) as ctx:
            assert ctx.tenant_id == 1
        async with guard.operation(REFRESH, _request()) as ctx:
            assert ctx.state == ContextState.UNBOUND
        assert audit_store.entries == []


class TestRejection:
    async def test_unresolved_tenant(self, guard: TenantGuard) -> None:
        """Nothing identifies a tenant."""
        with pytest.raises(TenantUnresolvedError):
            async with guard.operation(ORDERS, _request()):
                pytest.fail("handler must not run")
        assert current_context() is None

    async def test_public_needs_tenant(self, guard: TenantGuard) -> None:
        with pytest.raises(TenantUnresolvedError):
            async with guard.operation(MENUS, _request()):
                pass

    async def test_malformed_header(self, guard: TenantGuard) -> None:
        with pytest.raises(TenantUnresolvedError, match="Invalid"):
            async with guard.operation(
                ORDERS,
                _request(STAFF_OF_1, frontend_id="web", frontend_tenant_id="abc"),
            ):
                pass

    async def test_cross_tenant_denied(
        self, guard: TenantGuard, audit_store: RecordingAuditStore
    ) -> None:
        """Staff of 1 pointed at restaurant 2 via frontend headers."""
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(
                ORDERS,
                _request(STAFF_OF_1, frontend_id="web", frontend_tenant_id="2"),
            ):
                pytest.fail("handler must not run")
        assert len(audit_store.by_action(AuditAction.SUSPICIOUS_ACTIVITY)) == 1

    async def test_path_naming_other_tenant_denied(
        self, guard: TenantGuard, audit_store: RecordingAuditStore
    ) -> None:
        """Staff of 1 addressing restaurant 2 through the route path."""
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(
                RESTAURANT_UPDATE, _request(STAFF_OF_1, path_tenant_id="2")
            ):
                pytest.fail("handler must not run")
        [attempt] = audit_store.by_action(AuditAction.SUSPICIOUS_ACTIVITY)
        assert attempt.tenant_id == 1
        assert attempt.resource_id == "2"
        assert attempt.details["user_restaurant_id"] == 1
        assert attempt.details["target_restaurant_id"] == 2
        assert attempt.details["rule"] == "path_tenant_mismatch"

    async def test_path_mismatch_on_public_operation_denied(
        self, guard: TenantGuard, audit_store: RecordingAuditStore
    ) -> None:
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(
                RESTAURANT_SHOW,
                _request(frontend_id="web", frontend_tenant_id="1", path_tenant_id="2"),
            ):
                pass
        [attempt] = audit_store.by_action(AuditAction.SUSPICIOUS_ACTIVITY)
        assert attempt.details["target_restaurant_id"] == 2

    async def test_path_matching_own_tenant_admitted(self, guard: TenantGuard) -> None:
        async with guard.operation(
            RESTAURANT_UPDATE, _request(STAFF_OF_1, path_tenant_id="1")
        ) as ctx:
            assert ctx.tenant_id == 1

    async def test_super_admin_path_mismatch_admitted(
        self, guard: TenantGuard, audit_store: RecordingAuditStore
    ) -> None:
        async with guard.operation(
            RESTAURANT_UPDATE,
            _request(SUPER_ADMIN, tenant_param="1", path_tenant_id="2"),
        ) as ctx:
            assert ctx.tenant_id == 1
        assert audit_store.by_action(AuditAction.SUSPICIOUS_ACTIVITY) == []

    async def test_malformed_path_tenant(self, guard: TenantGuard) -> None:
        with pytest.raises(TenantUnresolvedError, match="Invalid"):
            async with guard.operation(
                RESTAURANT_UPDATE, _request(STAFF_OF_1, path_tenant_id="two")
            ):
                pass

    async def test_unknown_tenant_after_enforcement(self, guard: TenantGuard) -> None:
        with pytest.raises(TenantUnresolvedError, match="Restaurant not found"):
            async with guard.operation(ORDERS, _request(STAFF_OF_99)):
                pass

    async def test_inactive_tenant(self, guard: TenantGuard) -> None:
        with pytest.raises(TenantUnresolvedError, match="Restaurant not found"):
            async with guard.operation(ORDERS, _request(STAFF_OF_3)):
                pass

    async def test_denied_caller_cannot_discover_unknown_ids(
        self, guard: TenantGuard
    ) -> None:
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(
                ORDERS,
                _request(STAFF_OF_1, frontend_id="web", frontend_tenant_id="404"),
            ):
                pass

    async def test_origin_not_allowed(self, guard_factory: Any) -> None:
        guard = guard_factory()
        request = OperationRequest(
            signals=ResolutionSignals(path_tenant_id="2"),
            origin="https://evil.example",
        )
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(MENUS, request):
                pass

    async def test_handler_error_clears_context(self, guard: TenantGuard) -> None:
        with pytest.raises(RuntimeError):
            async with guard.operation(ORDERS, _request(STAFF_OF_1)) as ctx:
                raise RuntimeError("boom")
        assert ctx.state == ContextState.CLEARED


class TestRateLimiting:
    async def test_over_budget(
        self, guard: TenantGuard, metrics: MagicMock
    ) -> None:
        """Budget of 3 per window, the 4th request is refused."""
        for _ in range(3):
            async with guard.operation(ORDERS, _request(STAFF_OF_1)):
                pass
        with pytest.raises(RateLimitExceededError) as exc_info:
            async with guard.operation(ORDERS, _request(STAFF_OF_1)):
                pytest.fail("handler must not run")
        assert exc_info.value.tenant_id == 1
        assert exc_info.value.retry_after >= 1
        metrics.record_rate_limited.assert_called_once_with(1)

    async def test_anonymous_not_limited(
        self, guard: TenantGuard, fake_redis: FakeRedis
    ) -> None:
        for _ in range(5):
            async with guard.operation(MENUS, _request(path_tenant_id="1")):
                pass
        assert fake_redis.counts == {}

    async def test_unbound_not_limited(
        self, guard: TenantGuard, fake_redis: FakeRedis
    ) -> None:
        for _ in range(5):
            async with guard.operation(RESTAURANTS, _request(SUPER_ADMIN)):
                pass
        assert fake_redis.counts == {}

    async def test_declared_exempt(self, guard: TenantGuard, fake_redis: FakeRedis) -> None:
        exempt = Operation("orders.list", rate_limited=False)
        for _ in range(5):
            async with guard.operation(exempt, _request(STAFF_OF_1)):
                pass
        assert fake_redis.counts == {}

    async def test_catalog_exempt(self, guard_factory: Any, fake_redis: FakeRedis) -> None:
        guard = guard_factory(catalog=OperationCatalog(rate_limit_exempt=["orders.list"]))
        for _ in range(5):
            async with guard.operation(ORDERS, _request(STAFF_OF_1)):
                pass
        assert fake_redis.counts == {}

    async def test_denied_requests_not_counted(
        self, guard: TenantGuard, fake_redis: FakeRedis
    ) -> None:
        with pytest.raises(TenantAccessDeniedError):
            async with guard.operation(
                ORDERS,
                _request(STAFF_OF_1, frontend_id="web", frontend_tenant_id="2"),
            ):
                pass
        assert fake_redis.counts == {}


class TestCatalogOverrides:
    async def test_policy_override_applies(self, guard_factory: Any) -> None:
        guard = guard_factory(catalog=OperationCatalog({"orders.list": "global"}))
        assert guard.effective(ORDERS).policy == OperationPolicy.GLOBAL
        async with guard.operation(ORDERS, _request(SUPER_ADMIN)) as ctx:
            assert ctx.state == ContextState.UNBOUND
