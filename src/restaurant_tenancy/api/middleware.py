"""HTTP request/response logging and per-tenant metrics middleware."""

import time

import jwt
import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from restaurant_tenancy.config import Settings, get_settings
from restaurant_tenancy.tenancy.metrics import MetricsSink, PrometheusMetricsSink

logger = structlog.get_logger()

SKIP_PATHS: frozenset[str] = frozenset(
    {"/health", "/metrics", "/docs", "/openapi.json", "/redoc"}
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with method, path, status code, and latency."""

    SKIP_PATHS = SKIP_PATHS

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and log timing information."""
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
            tenant_id=getattr(request.state, "tenant_id", None),
        )
        return response


def sniff_tenant(request: Request, settings: Settings) -> int | None:
    """Best-effort tenant guess for labelling metrics.

    Reads unverified signals (header, query parameter, unverified token
    claim). The result must never be used for access decisions.
    """
    candidates = [request.headers.get(settings.frontend_tenant_header)]
    candidates += [request.query_params.get(name) for name in settings.tenant_param_names]

    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        try:
            claims = jwt.decode(auth[7:], options={"verify_signature": False})
        except jwt.InvalidTokenError:
            claims = {}
        restaurant_id = claims.get("restaurant_id")
        candidates.append(str(restaurant_id) if restaurant_id is not None else None)

    for value in candidates:
        if value and value.strip().isdigit():
            return int(value)
    return None


class TenantMetricsMiddleware(BaseHTTPMiddleware):
    """Record per-tenant request latency.

    Prefers the tenant verified by the guard (``request.state.tenant_id``);
    falls back to ``sniff_tenant`` for requests the guard rejected or never
    saw, labelled with ``confidence="inferred"``.
    """

    def __init__(
        self,
        app: ASGIApp,
        metrics: MetricsSink | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(app)
        self._metrics = metrics or PrometheusMetricsSink()
        self._settings = settings or get_settings()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        tenant_id = getattr(request.state, "tenant_id", None)
        confidence = "verified"
        if tenant_id is None:
            tenant_id = sniff_tenant(request, self._settings)
            confidence = "inferred" if tenant_id is not None else "none"

        self._metrics.observe_request(
            tenant_id,
            method=request.method,
            status_code=response.status_code,
            duration_seconds=duration,
            confidence=confidence,
        )
        return response
