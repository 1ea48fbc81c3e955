"""Tests for per-tenant metrics: sink, tenant sniffing, middleware labels."""

from __future__ import annotations

from unittest.mock import MagicMock

import jwt
import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from restaurant_tenancy.api.middleware import TenantMetricsMiddleware, sniff_tenant
from restaurant_tenancy.config import Settings
from restaurant_tenancy.tenancy.metrics import PrometheusMetricsSink


def _request(headers: dict[str, str] | None = None, query: str = "") -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request(
        scope={
            "type": "http",
            "method": "GET",
            "path": "/api/v1/orders",
            "query_string": query.encode(),
            "headers": raw,
        }
    )


def _unsigned(claims: dict[str, object]) -> str:
    return jwt.encode(claims, "whatever-key-used-for-sniffing-only", algorithm="HS256")


class TestSniffTenant:
    settings = Settings()

    def test_frontend_header(self) -> None:
        request = _request({"X-Frontend-Restaurant-ID": "4"})
        assert sniff_tenant(request, self.settings) == 4

    def test_query_parameter(self) -> None:
        assert sniff_tenant(_request(query="tenant_id=9"), self.settings) == 9

    def test_unverified_token_claim(self) -> None:
        token = _unsigned({"user_id": 1, "restaurant_id": 6})
        request = _request({"Authorization": f"Bearer {token}"})
        assert sniff_tenant(request, self.settings) == 6

    def test_garbage_token(self) -> None:
        request = _request({"Authorization": "Bearer garbage"})
        assert sniff_tenant(request, self.settings) is None

    def test_malformed_values_skipped(self) -> None:
        request = _request({"X-Frontend-Restaurant-ID": "abc"}, query="restaurant_id=2")
        assert sniff_tenant(request, self.settings) == 2

    def test_nothing(self) -> None:
        assert sniff_tenant(_request(), self.settings) is None


def _app(sink: MagicMock) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TenantMetricsMiddleware, metrics=sink, settings=Settings())

    @app.get("/verified")
    async def verified(request: Request) -> dict[str, str]:
        request.state.tenant_id = 3
        return {"ok": "yes"}

    @app.get("/plain")
    async def plain() -> dict[str, str]:
        return {"ok": "yes"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"ok": "yes"}

    return app


@pytest.fixture()
def sink() -> MagicMock:
    return MagicMock()


@pytest.fixture()
async def client(sink: MagicMock) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=_app(sink)), base_url="http://test")


class TestTenantMetricsMiddleware:
    async def test_verified_tenant(self, client: AsyncClient, sink: MagicMock) -> None:
        async with client:
            await client.get("/verified", headers={"X-Frontend-Restaurant-ID": "8"})
        args, kwargs = sink.observe_request.call_args
        assert args == (3,)
        assert kwargs["confidence"] == "verified"
        assert kwargs["method"] == "GET"
        assert kwargs["status_code"] == 200
        assert kwargs["duration_seconds"] >= 0

    async def test_inferred_tenant(self, client: AsyncClient, sink: MagicMock) -> None:
        async with client:
            await client.get("/plain", headers={"X-Frontend-Restaurant-ID": "8"})
        args, kwargs = sink.observe_request.call_args
        assert args == (8,)
        assert kwargs["confidence"] == "inferred"

    async def test_no_tenant(self, client: AsyncClient, sink: MagicMock) -> None:
        async with client:
            await client.get("/plain")
        args, kwargs = sink.observe_request.call_args
        assert args == (None,)
        assert kwargs["confidence"] == "none"

    async def test_skipped_paths(self, client: AsyncClient, sink: MagicMock) -> None:
        async with client:
            await client.get("/health")
        sink.observe_request.assert_not_called()


class TestPrometheusMetricsSink:
    def test_counters(self) -> None:
        sink = PrometheusMetricsSink()

        def value(name: str, **labels: str) -> float:
            return REGISTRY.get_sample_value(name, labels) or 0.0

        before_access = value("tenant_access_total", restaurant_id="77", outcome="denied")
        before_attempts = value("cross_tenant_access_attempts_total", restaurant_id="none")
        before_limited = value("tenant_rate_limited_total", restaurant_id="77")

        sink.record_access(77, "denied")
        sink.record_cross_tenant_attempt(None)
        sink.record_rate_limited(77)

        assert value("tenant_access_total", restaurant_id="77", outcome="denied") == (
            before_access + 1
        )
        assert value("cross_tenant_access_attempts_total", restaurant_id="none") == (
            before_attempts + 1
        )
        assert value("tenant_rate_limited_total", restaurant_id="77") == before_limited + 1

    def test_latency_histogram(self) -> None:
        sink = PrometheusMetricsSink()
        labels = {
            "restaurant_id": "78",
            "method": "GET",
            "status": "200",
            "confidence": "verified",
        }
        before = REGISTRY.get_sample_value("tenant_request_latency_seconds_count", labels) or 0.0
        sink.observe_request(
            78, method="GET", status_code=200, duration_seconds=0.02, confidence="verified"
        )
        after = REGISTRY.get_sample_value("tenant_request_latency_seconds_count", labels)
        assert after == before + 1
