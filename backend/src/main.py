# pyright: reportMissingTypeStubs=false
"""
Therapy Calendar Backend API

A FastAPI application serving clinician availability calendars for a
therapy practice.

Features:
- Day/week/month availability grids across time zones
- Schedule settings and availability exceptions
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import calendar
from core.constants import CORS_ORIGINS
from core.database import create_tables
from core.exceptions import DataFetchError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("Therapy Calendar API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Therapy Calendar Backend API")
    try:
        create_tables()
    except Exception as e:
        logger.exception(f"Failed to create database tables: {e}")
        raise

    yield

    logger.info("Shutting down Therapy Calendar Backend API")


# Create FastAPI application
app = FastAPI(
    title="Therapy Calendar Backend",
    description="Clinician availability and appointment calendar",
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
    calendar.router,
    prefix="/api",
    tags=["calendar"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        503: {"description": "Schedule data unavailable"},
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
        "message": "Therapy Calendar Backend API",
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


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(DataFetchError)
async def data_fetch_error_handler(request: Request, exc: DataFetchError):
    """Handle row store failures; clients retry."""
    logger.warning(f"Schedule data unavailable ({exc.query}): {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Schedule data temporarily unavailable", "type": "data_fetch_error"},
    )
