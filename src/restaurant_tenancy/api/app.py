"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from restaurant_tenancy.api.middleware import (
    RequestLoggingMiddleware,
    TenantMetricsMiddleware,
)
from restaurant_tenancy.api.routes.audit_logs import router as audit_logs_router
from restaurant_tenancy.api.routes.auth import router as auth_router
from restaurant_tenancy.api.routes.menus import router as menus_router
from restaurant_tenancy.api.routes.metrics import router as metrics_router
from restaurant_tenancy.api.routes.orders import router as orders_router
from restaurant_tenancy.api.routes.restaurants import router as restaurants_router
from restaurant_tenancy.config import Settings, settings
from restaurant_tenancy.errors import (
    RateLimitExceededError,
    TenantAccessDeniedError,
    TenantUnresolvedError,
)
from restaurant_tenancy.logging_config import configure_logging
from restaurant_tenancy.storage.audit_repository import SqlAuditStore
from restaurant_tenancy.storage.database import async_session, engine
from restaurant_tenancy.storage.scoping import validate_scoping
from restaurant_tenancy.storage.tenant_directory import SqlTenantDirectory
from restaurant_tenancy.tenancy.audit import AuditLogger
from restaurant_tenancy.tenancy.dev_fallback import create_resolver
from restaurant_tenancy.tenancy.enforcer import IsolationEnforcer
from restaurant_tenancy.tenancy.guard import TenantGuard
from restaurant_tenancy.tenancy.metrics import PrometheusMetricsSink
from restaurant_tenancy.tenancy.policy import OperationCatalog
from restaurant_tenancy.tenancy.rate_limiter import TenantRateLimiter

logger = structlog.get_logger()

RATE_LIMITED_DETAIL = "Rate limit exceeded. Please try again later."


def create_tenant_guard(app_settings: Settings, redis: Redis) -> TenantGuard:
    """Wire the tenancy layer against the application database and Redis."""
    metrics = PrometheusMetricsSink()
    directory = SqlTenantDirectory(async_session)
    audit = AuditLogger(
        SqlAuditStore(async_session),
        metrics=metrics,
        timeout_seconds=app_settings.audit_write_timeout_seconds,
    )
    return TenantGuard(
        resolver=create_resolver(app_settings, directory),
        enforcer=IsolationEnforcer(audit, privileged_role=app_settings.privileged_role),
        rate_limiter=TenantRateLimiter(
            redis,
            window_seconds=app_settings.rate_limit_window_seconds,
            max_requests=app_settings.rate_limit_max_requests,
        ),
        directory=directory,
        catalog=OperationCatalog(
            app_settings.operation_policies,
            app_settings.rate_limit_exempt_operations,
        ),
        metrics=metrics,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Validate scopable paths (refuses to start on gaps).
        - Create Redis client for rate limit counters.
        - Build the tenant guard.
    Shutdown:
        - Close Redis client.
        - Dispose database engine (close connection pool).
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )
    unregistered = validate_scoping()
    if unregistered:
        logger.warning(
            "tenant_scoping_gaps",
            entities=[entity.__name__ for entity in unregistered],
        )

    redis = Redis.from_url(settings.redis_url)
    app.state.redis = redis
    app.state.tenant_guard = create_tenant_guard(settings, redis)

    logger.info("app_started", environment=str(settings.environment))
    yield

    await redis.aclose()
    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="Restaurant Tenancy",
    description="Tenant resolution and isolation for the restaurant ordering API",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

app.add_middleware(TenantMetricsMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
)


HEALTH_CHECK_TIMEOUT = 5.0


@app.get("/health")
async def health() -> JSONResponse:
    """Deep health check: verifies DB and Redis connectivity."""
    checks: dict[str, str] = {}
    overall = "ok"

    # DB check
    try:
        async with async_session() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        checks["db"] = "ok"
    except (TimeoutError, OperationalError, SQLAlchemyError) as e:
        logger.warning("health_check_db_error", error=type(e).__name__)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"
    except Exception as e:
        logger.error("health_check_db_unexpected", error=str(e), exc_info=True)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"

    # Redis check
    try:
        redis = app.state.redis
        await asyncio.wait_for(redis.ping(), timeout=HEALTH_CHECK_TIMEOUT)
        checks["redis"] = "ok"
    except (TimeoutError, RedisError, OSError) as e:
        logger.warning("health_check_redis_error", error=type(e).__name__)
        checks["redis"] = f"error: {type(e).__name__}"
        overall = "degraded"
    except Exception as e:
        logger.error("health_check_redis_unexpected", error=str(e), exc_info=True)
        checks["redis"] = f"error: {type(e).__name__}"
        overall = "degraded"

    status_code = 200 if overall == "ok" else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        },
    )


@app.exception_handler(TenantUnresolvedError)
async def tenant_unresolved_handler(
    request: Request,
    exc: TenantUnresolvedError,
) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.reason})


@app.exception_handler(TenantAccessDeniedError)
async def tenant_access_denied_handler(
    request: Request,
    exc: TenantAccessDeniedError,
) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": exc.reason})


@app.exception_handler(RateLimitExceededError)
async def rate_limit_handler(
    request: Request,
    exc: RateLimitExceededError,
) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": RATE_LIMITED_DETAIL},
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions.

    Includes TenantContextMissingError: a scoped query without a bound
    tenant is a defect, never a client error.
    """
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(restaurants_router, prefix="/api/v1")
app.include_router(menus_router, prefix="/api/v1")
app.include_router(orders_router, prefix="/api/v1")
app.include_router(audit_logs_router, prefix="/api/v1")
app.include_router(auth_router, prefix="/api/v1")
app.include_router(metrics_router)
