"""
FastAPI Application Entry Point.

This is the main application file for the Tickto booking backend.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from tickto.app.core.config import settings
from tickto.app.api.v1.router import router as api_v1_router
from tickto.app.core.observability import ObservabilityMiddleware, configure_logging
from tickto.app.core.redis_client import get_redis
from tickto.app.db.session import engine, Base, AsyncSessionLocal
from tickto.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from tickto.app.services.status_reconciler import run_periodic_reconciliation

# Import models to ensure they are registered with Base
from tickto.app.models.trip import Trip
from tickto.app.models.vehicle import Vehicle

configure_logging(settings.log_level)
logger = logging.getLogger("tickto")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Starts the periodic status reconciliation job when configured.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    reconcile_task = None
    if settings.reconcile_interval_seconds > 0:
        reconcile_task = asyncio.create_task(
            run_periodic_reconciliation(
                AsyncSessionLocal, get_redis, settings.reconcile_interval_seconds
            )
        )
    
    yield
    
    if reconcile_task is not None:
        reconcile_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reconcile_task
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Booking backend for scheduled bus trips",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """Service banner."""
    return {
        "message": "Tickto Server is Running",
        "docs": "/docs",
        "health": "/health",
    }
