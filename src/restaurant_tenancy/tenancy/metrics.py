"""Per-tenant operational metrics.

``MetricsSink`` is what the tenancy layer talks to; ``PrometheusMetricsSink``
is the production implementation exposed on ``/metrics``.
"""

from __future__ import annotations

from typing import Protocol

from prometheus_client import Counter, Histogram

NO_TENANT = "none"

tenant_access_total = Counter(
    "tenant_access_total",
    "Tenant access decisions",
    ["restaurant_id", "outcome"],
)

cross_tenant_attempts_total = Counter(
    "cross_tenant_access_attempts_total",
    "Denied attempts to operate as another restaurant",
    ["restaurant_id"],
)

rate_limited_total = Counter(
    "tenant_rate_limited_total",
    "Requests rejected by the per-tenant rate limiter",
    ["restaurant_id"],
)

tenant_request_latency_seconds = Histogram(
    "tenant_request_latency_seconds",
    "Request latency by restaurant",
    ["restaurant_id", "method", "status", "confidence"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


def _label(tenant_id: int | None) -> str:
    return str(tenant_id) if tenant_id is not None else NO_TENANT


class MetricsSink(Protocol):
    def record_access(self, tenant_id: int | None, outcome: str) -> None: ...

    def record_cross_tenant_attempt(self, actor_tenant_id: int | None) -> None: ...

    def record_rate_limited(self, tenant_id: int) -> None: ...

    def observe_request(
        self,
        tenant_id: int | None,
        *,
        method: str,
        status_code: int,
        duration_seconds: float,
        confidence: str,
    ) -> None: ...


class PrometheusMetricsSink:
    """Prometheus-based tenancy metrics."""

    def record_access(self, tenant_id: int | None, outcome: str) -> None:
        tenant_access_total.labels(restaurant_id=_label(tenant_id), outcome=outcome).inc()

    def record_cross_tenant_attempt(self, actor_tenant_id: int | None) -> None:
        cross_tenant_attempts_total.labels(restaurant_id=_label(actor_tenant_id)).inc()

    def record_rate_limited(self, tenant_id: int) -> None:
        rate_limited_total.labels(restaurant_id=_label(tenant_id)).inc()

    def observe_request(
        self,
        tenant_id: int | None,
        *,
        method: str,
        status_code: int,
        duration_seconds: float,
        confidence: str,
    ) -> None:
        tenant_request_latency_seconds.labels(
            restaurant_id=_label(tenant_id),
            method=method,
            status=str(status_code),
            confidence=confidence,
        ).observe(duration_seconds)
