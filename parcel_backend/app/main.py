"""
FastAPI Application Entry Point.

This is the main application file for the Parcel Delivery Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from parcel_backend.app.core.config import settings
from parcel_backend.app.api.v1.router import router as api_v1_router
from parcel_backend.app.core.observability import ObservabilityMiddleware
from parcel_backend.app.core.token_revocation import connect_revocation_store, get_redis, revocation_store_reachable
from parcel_backend.app.db.session import build_database
from parcel_backend.app.services.payment_gateway import payment_gateway
from parcel_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from parcel_backend.app.models.user import User
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.tracking_event import TrackingEvent
from parcel_backend.app.models.payment import PaymentRecord

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("parcel_backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Builds the database and revocation store once and creates tables.
    2. Closes every connection pool on shutdown.
    """
    app.state.db = build_database(settings)
    await app.state.db.create_all()
    app.state.redis = connect_revocation_store(settings)
    logger.info("%s %s started", settings.app_name, settings.api_version)
    yield
    await payment_gateway.aclose()
    await app.state.redis.aclose()
    await app.state.db.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Parcel delivery backend: parcels, riders, payments and tracking",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(redis=Depends(get_redis)):
    """
    Health check endpoint.
    
    Redis being down does not make the service unhealthy: token revocation
    checks fail open.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "ok" if await revocation_store_reachable(redis) else "unavailable",
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Parcel server is running",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(api_v1_router, prefix=settings.api_prefix)
