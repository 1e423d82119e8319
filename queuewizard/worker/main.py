"""
Worker process for executing jobs.

Builds the execution engine (store, executor, dispatcher, scheduler) from
settings and runs it until SIGTERM/SIGINT, then drains in-flight jobs.
"""

import asyncio
import logging
import signal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queuewizard.config import Settings, get_settings
from queuewizard.db import close_db, connection, init_db
from queuewizard.db.store import SqlJobStore
from queuewizard.observability.logging import setup_logging
from queuewizard.observability.metrics import setup_metrics
from queuewizard.observability.tracing import setup_tracing
from queuewizard.worker.dispatcher import Dispatcher
from queuewizard.worker.executor import Executor
from queuewizard.worker.scheduler import Scheduler

logger = logging.getLogger(__name__)


def build_scheduler(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Scheduler:
    """
    Wire the execution engine from configuration.

    Args:
        settings: Settings to use; defaults to the cached application settings.
        session_factory: Optional session factory for the job store;
            defaults to the one init_db() created. It is bound here so
            executions that outlive a drain timeout can still report after
            close_db().
        transport: Optional httpx transport for outbound requests.

    Returns:
        A scheduler that has not been started yet.
    """
    settings = settings or get_settings()
    session_factory = session_factory or connection.AsyncSessionLocal

    store = SqlJobStore(
        max_attempts=settings.worker_max_attempts,
        session_factory=session_factory,
    )
    executor = Executor(
        store,
        request_timeout=settings.worker_request_timeout_seconds,
        transport=transport,
    )
    dispatcher = Dispatcher(executor, max_concurrent=settings.worker_max_concurrent)

    return Scheduler(
        store,
        dispatcher,
        poll_interval=settings.worker_poll_interval_seconds,
        worker_id=settings.worker_id,
    )


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_metrics()
    setup_tracing()
    await init_db()

    settings = get_settings()
    scheduler = build_scheduler(settings)

    # Handle shutdown signals
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    scheduler.start()

    try:
        await stop_requested.wait()
        logger.info("Worker stopping", extra={"worker_id": settings.worker_id})
    finally:
        await scheduler.stop(
            drain=True,
            timeout=settings.worker_shutdown_timeout_seconds,
        )
        await close_db()

    logger.info("Worker stopped", extra={"worker_id": settings.worker_id})


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
