"""
Queue status routes.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from queuewizard.api.auth import CurrentUser
from queuewizard.config import get_settings
from queuewizard.constants import API_V1_PREFIX
from queuewizard.db import get_async_session
from queuewizard.db.repository import JobRepository
from queuewizard.observability.metrics import get_metrics
from queuewizard.types.api import ErrorResponse, QueueStatusResponse
from queuewizard.worker.scheduler import Scheduler

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix=f"{API_V1_PREFIX}/queue",
    tags=["Queue"],
    responses={401: {"model": ErrorResponse}},
)


def get_scheduler(request: Request) -> Scheduler | None:
    """Dependency returning the scheduler embedded in this process, if any."""
    return getattr(request.app.state, "scheduler", None)


@router.get(
    "/status",
    response_model=QueueStatusResponse,
    summary="Queue status",
    description="Counts of jobs by status and current engine utilization.",
)
async def queue_status(
    current_user: CurrentUser,
    scheduler: Scheduler | None = Depends(get_scheduler),
    session: AsyncSession = Depends(get_async_session),
) -> QueueStatusResponse:
    """
    Report queue counts and utilization.

    When no scheduler runs in this process, in_flight is 0 and
    max_concurrent comes from configuration.
    """
    repo = JobRepository(session)
    counts = await repo.get_queue_counts()

    if scheduler is not None:
        engine_status = scheduler.status()
        in_flight = engine_status.in_flight
        max_concurrent = engine_status.max_concurrent
    else:
        in_flight = 0
        max_concurrent = get_settings().worker_max_concurrent

    get_metrics().update_queue_depth(
        {
            "pending": counts["pending"],
            "processing": counts["processing"],
            "failed": counts["failed"],
        }
    )

    logger.info(
        "Queue status read",
        extra={"owner_id": current_user.owner_id, **counts}
    )

    return QueueStatusResponse(
        pending_count=counts["pending"],
        processing_count=counts["processing"],
        completed_today=counts["completed_today"],
        failed_count=counts["failed"],
        in_flight=in_flight,
        max_concurrent=max_concurrent,
    )
