"""
FastAPI application entry point.

When worker_enabled is set, the execution engine runs inside the API
process and is stopped (with drain) on shutdown.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from queuewizard import __version__
from queuewizard.api.routes import (
    auth_router,
    health_router,
    jobs_router,
    queue_router,
)
from queuewizard.config import get_settings
from queuewizard.db import close_db, init_db
from queuewizard.observability.logging import setup_logging
from queuewizard.observability.metrics import setup_metrics
from queuewizard.observability.tracing import instrument_fastapi, setup_tracing
from queuewizard.worker.main import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()
    await init_db()

    if settings.worker_enabled:
        scheduler = build_scheduler(settings)
        scheduler.start()
        app.state.scheduler = scheduler

    logger.info(
        "Application started",
        extra={"worker_enabled": settings.worker_enabled},
    )

    yield

    # Shutdown
    scheduler = app.state.scheduler
    if scheduler is not None:
        await scheduler.stop(
            drain=True,
            timeout=settings.worker_shutdown_timeout_seconds,
        )
        app.state.scheduler = None

    await close_db()
    logger.info("Application shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="QueueWizard API",
        description="HTTP job queue with prioritized, retried execution",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.scheduler = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(jobs_router)
    app.include_router(queue_router)

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "queuewizard.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
