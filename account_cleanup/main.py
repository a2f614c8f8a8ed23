# Account Cleanup Service - Main Application

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from .config import get_settings
from .database import create_tables
from .routes import cron_router
from .models.schemas import HealthResponse
from .services.cron import cron_loop

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Account Cleanup Service...")
    await create_tables()
    logger.info("Database tables created")

    cron_task = None
    if settings.cleanup_loop_enabled:
        cron_task = asyncio.create_task(cron_loop())

    yield

    # Shutdown
    logger.info("Shutting down Account Cleanup Service...")
    if cron_task is not None:
        cron_task.cancel()
        try:
            await cron_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Deletion reminders and grace-period account cleanup",
    lifespan=lifespan,
)

app.include_router(cron_router)


@app.get("/v1/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns server status and version.
    """
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/v1/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "account_cleanup.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
