"""
FastAPI Application

Main entry point for the SalesPulse API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from salespulse.config import get_settings
from salespulse.config.logging import configure_logging
from salespulse.database.connection import close_database, init_database
from salespulse.exceptions import SyncError, ValidationError
from salespulse.serving.api.middleware import RequestLoggingMiddleware
from salespulse.serving.api.routes import analytics_router, health_router
from salespulse.serving.cache import close_redis, init_redis

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting SalesPulse API", environment=settings.app_env)

    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database init failed: {e}")

    if settings.sync.cache_backend == "redis":
        try:
            await init_redis()
            logger.info("Redis initialized")
        except Exception as e:
            logger.warning(f"Redis init failed: {e}")

    yield

    logger.info("Shutting down...")
    await close_database()
    await close_redis()


app = FastAPI(
    title="SalesPulse API",
    description="POS transaction sync and period analytics",
    version=settings.version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    logger.error("Synchronization failed", owner_id=exc.owner_id, fetched=exc.fetched, total=exc.total, error=str(exc))
    return JSONResponse(
        status_code=503,
        content={
            "detail": str(exc),
            "owner_id": exc.owner_id,
            "fetched": exc.fetched,
            "total": exc.total,
        },
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "missing_columns": exc.missing_columns,
            "bill_number": exc.bill_number,
        },
    )


app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "SalesPulse API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
