"""
HauntQ API - Main FastAPI application.

Hands out haunted house queue spots and group reservations.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hauntq.config import get_settings
from hauntq.database import init_db

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Startup
    logger.info("Starting %s in %s mode...", settings.app_name, settings.app_env)
    await init_db()
    logger.info("Database initialized.")
    if not settings.cron_secret:
        if settings.app_env == "production":
            logger.warning("CRON_SECRET is not set, the reservation sweep endpoint is disabled")
        else:
            logger.warning("CRON_SECRET is not set, anyone can trigger the reservation sweep")

    yield

    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="Queue spots and group reservations for haunted houses",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware - allow frontend apps to connect
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local web dev
        # Add production URLs here
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "app": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


# Routers
from hauntq.routers import admin, auth, cron, customer, houses  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(houses.router, prefix="/api", tags=["Haunted Houses"])
app.include_router(customer.router, prefix="/api/customer", tags=["Customer"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
