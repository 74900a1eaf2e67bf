"""
Library Catalog API application.

Wires the author and book routers, the request context middleware, the
database pool lifecycle and the mapping from ``CatalogError`` kinds to HTTP
responses. Operational endpoints (``/health``, ``/ready`` and the metrics
endpoint) live outside the API prefix.
"""

import structlog
import uvicorn
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from prometheus_client import CONTENT_TYPE_LATEST

from catalog_api.config import get_settings, Settings
from catalog_api.dependencies import close_db_pool, create_schema, get_db_pool, init_db_pool
from catalog_api.errors import CatalogError
from catalog_api.middleware import RequestContextMiddleware
from catalog_api.routers import authors_router, books_router
from shared.logging import configure_logging
from shared.metrics import get_http_metrics, get_metrics_handler

settings: Settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.log_format == "json",
    service_name=settings.app_name,
    environment=settings.environment
)

logger = structlog.get_logger(__name__)

http_metrics = get_http_metrics()


def record_pool_usage() -> None:
    """Copy pool occupancy into the connection gauges, if a pool is open."""
    try:
        pool = get_db_pool()
    except RuntimeError:
        return
    size, idle = pool.get_size(), pool.get_idle_size()
    http_metrics.db_connections_active.set(size - idle)
    http_metrics.db_connections_idle.set(idle)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the database pool and ensure the schema before serving.

    The pool is closed on shutdown even when startup fails halfway.
    """
    logger.info(
        "catalog_api_starting",
        version=settings.app_version,
        environment=settings.environment,
        create_schema=settings.database_create_schema
    )

    try:
        pool = await init_db_pool()

        async with pool.acquire() as conn:
            server_version = await conn.fetchval("SHOW server_version")
        logger.info("database_connected", server_version=server_version)

        if settings.database_create_schema:
            await create_schema(pool)

        record_pool_usage()
        logger.info("catalog_api_started", api_prefix=settings.api_prefix)

        yield

    except Exception as e:
        logger.error("catalog_api_startup_failed", error=str(e), exc_info=True)
        raise

    finally:
        await close_db_pool()
        logger.info("catalog_api_stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Catalog API for authors and books. Enforces soft delete, ISBN and "
        "email uniqueness, and primary/co-author consistency."
    ),
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
    debug=settings.debug,
)

if settings.cors_enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

app.add_middleware(RequestContextMiddleware, metrics=http_metrics)


# ============================================================================
# Error responses
# ============================================================================

@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """Render a catalog failure as ``{detail, error_code, field}``."""
    logger.info(
        "catalog_error_returned",
        path=request.url.path,
        error_code=exc.error_code,
        field=exc.field,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed payloads and query parameters are 422, not catalog validation."""
    errors = jsonable_encoder(exc.errors())
    logger.warning("request_schema_rejected", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors, "error_code": "request_validation_error"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": "http_error", "field": None}
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "internal_error", "field": None}
    )


# ============================================================================
# Operational endpoints
# ============================================================================

@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """Liveness probe; does not touch the database."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """Readiness probe; ready only when the database answers ``SELECT 1``."""
    try:
        async with get_db_pool().acquire() as conn:
            await conn.fetchval("SELECT 1")
        database = "healthy"
    except Exception as e:
        logger.warning("readiness_database_unavailable", error=str(e))
        database = "unhealthy"

    record_pool_usage()
    ready = database == "healthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "not_ready",
            "service": settings.app_name,
            "checks": {"database": database}
        }
    )


if settings.metrics_enabled:
    render_metrics = get_metrics_handler()

    @app.get(settings.metrics_endpoint, tags=["Monitoring"], response_class=PlainTextResponse)
    async def metrics() -> Response:
        """Prometheus exposition of HTTP, pool and catalog mutation metrics."""
        record_pool_usage()
        return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)


app.include_router(authors_router, prefix=settings.api_prefix)
app.include_router(books_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    uvicorn.run(
        "catalog_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
