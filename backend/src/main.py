# pyright: reportMissingTypeStubs=false
"""
Clinic Reception Backend API

A FastAPI application behind the clinic's three reception apps:
- Patient LIFF app (LINE): sign-in, patient number linking, self check-in
- Staff dashboard: live visit queue, proxy check-in, patient management
- Waiting-room display: public queue length and estimated wait
"""

import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import auth, clinic, liff, public
from core.constants import CORS_ORIGINS
from services.public_status_aggregator import start_public_status_aggregator, stop_public_status_aggregator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Reception API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Reception Backend API")

    # Start public status aggregator
    # Note: Database sessions are created fresh for each recompute
    try:
        await start_public_status_aggregator()
        logger.info("✅ Public status aggregator started")
    except Exception as e:
        logger.exception(f"❌ Failed to start public status aggregator: {e}")

    yield

    # Stop public status aggregator
    try:
        await stop_public_status_aggregator()
        logger.info("🛑 Public status aggregator stopped")
    except Exception as e:
        logger.exception(f"❌ Error stopping public status aggregator: {e}")

    logger.info("🛑 Shutting down Clinic Reception Backend API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Reception Backend",
    description="Check-in, visit queue and wait-time display for clinic reception",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    clinic.router,
    prefix="/api/clinic",
    tags=["clinic"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    liff.router,
    prefix="/api/liff",
    tags=["liff"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    public.router,
    prefix="/api/public",
    tags=["public"],
    responses={
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic Reception Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "サーバー内部エラーが発生しました", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def http_status_error_handler(request: Request, exc: httpx.HTTPStatusError):
    """Handle HTTP status errors from external services."""
    logger.exception(f"External service error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "外部サービスでエラーが発生しました", "type": "external_service_error"},
    )
