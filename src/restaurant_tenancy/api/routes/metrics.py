"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes the tenancy metrics:
    - tenant_access_total{restaurant_id, outcome}
    - cross_tenant_access_attempts_total{restaurant_id}
    - tenant_rate_limited_total{restaurant_id}
    - tenant_request_latency_seconds{restaurant_id, method, status, confidence}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
