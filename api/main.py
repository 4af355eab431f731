"""
FastAPI application entry point.

Configures the API with all routes, middleware, and error handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rideauth import __version__

from .v1.router import router as v1_router
from .deps import get_services, close_services
from .errors import register_exception_handlers

logger = logging.getLogger(__name__)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


def purge_expired_passcodes():
    """Background job removing passcodes that expired without being used."""
    try:
        removed = get_services().passcodes.purge_expired()
        if removed:
            logger.info(f"Scheduled passcode purge removed {removed} record(s)")
    except Exception as e:
        logger.error(f"Scheduled passcode purge failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    global scheduler

    logger.info("Starting ride auth API...")

    # Initialize services on startup
    services = get_services()
    logger.info("Services initialized")

    interval = services.config.otp.cleanup_interval_seconds
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        purge_expired_passcodes,
        trigger=IntervalTrigger(seconds=interval),
        id="passcode_purge",
        name="Purge expired passcodes",
        replace_existing=True
    )
    scheduler.start()
    logger.info(f"Background scheduler started - passcode purge every {interval}s")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down...")
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    close_services()


app = FastAPI(
    title="Ride Auth API",
    description="Passwordless phone authentication for the ride coordination service",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# Health check
@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "ride-auth-api"}


# Include API v1 routes
app.include_router(v1_router, prefix="/api/v1")


# Root endpoint
@app.get("/", tags=["System"])
async def root():
    """API root endpoint."""
    return {
        "name": "Ride Auth API",
        "version": __version__,
        "docs": "/docs"
    }
