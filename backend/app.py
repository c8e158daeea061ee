"""
Aircon Trigger Backend Application

FastAPI host process: runs the periodic scheduler and serves the JSON API.
"""

import os
import sys
from contextlib import asynccontextmanager

import log_config  # noqa: F401
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from loguru import logger

# Add project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Import API router
import api
from api import router as api_router

from core.aircon.exceptions import ConfigurationError, StoreUnavailableError
from core.aircon.scheduler_service import (
    SchedulerService,
    build_scheduler,
    seed_default_triggers,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Aircon trigger starting")

    settings = api.settings
    if settings.seed_triggers:
        try:
            written = seed_default_triggers(api.trigger_store, settings.seed_triggers)
            logger.info(f"Seeded {written} default trigger(s) from settings")
        except StoreUnavailableError as e:
            logger.warning(f"Failed to seed default triggers: {e}")

    scheduler_service = None
    try:
        settings.validate(require_devices=True)
    except ConfigurationError as e:
        logger.warning(f"⚠️ Scheduler disabled: {e}")
    else:
        scheduler = build_scheduler(settings, api.kv_store, history=api.tick_history)
        scheduler_service = SchedulerService(scheduler, settings.tick_interval_seconds)
        await scheduler_service.start()

        # Make scheduler service available to API
        api.scheduler_service = scheduler_service

    yield

    # Shutdown
    logger.info("Aircon trigger shutting down")
    if scheduler_service:
        await scheduler_service.stop()
        api.scheduler_service = None


# Create FastAPI application
app = FastAPI(
    title="Aircon Trigger API",
    description="Turns the air conditioner on when the room gets too hot (or cold) on working days",
    version="0.1.0",
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


# Include API router
app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
