"""
Job management routes.
"""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from queuewizard.api.auth import CurrentUser
from queuewizard.constants import API_V1_PREFIX, JobStatus
from queuewizard.db import get_async_session
from queuewizard.db.repository import JobRepository
from queuewizard.types.api import (
    CreateJobRequest,
    ErrorResponse,
    JobListResponse,
    JobResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix=f"{API_V1_PREFIX}/jobs",
    tags=["Jobs"],
    responses={401: {"model": ErrorResponse}},
)


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a job",
    description="Queue an HTTP request for asynchronous execution.",
)
async def create_job(
    request: CreateJobRequest,
    current_user: CurrentUser,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    """
    Create a new pending job owned by the caller.

    Args:
        request: Job creation request.
        current_user: Authenticated caller context.
        session: Database session.

    Returns:
        JobResponse for the stored job.
    """
    repo = JobRepository(session)

    job = await repo.create_job(
        owner_id=current_user.owner_id,
        method=request.method,
        url=str(request.url),
        headers=request.headers,
        body=json.dumps(request.body) if request.body is not None else None,
        priority=request.priority,
    )

    await session.commit()

    logger.info(
        "Job submitted",
        extra={
            "job_id": str(job.id),
            "owner_id": current_user.owner_id,
            "method": job.method,
            "priority": job.priority,
        }
    )

    return JobResponse.model_validate(job)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get job details",
    responses={404: {"model": ErrorResponse}},
    description="Get detailed information about a specific job.",
)
async def get_job(
    job_id: UUID,
    current_user: CurrentUser,
    session: AsyncSession = Depends(get_async_session),
) -> JobResponse:
    """
    Get job details by ID.

    Jobs owned by someone else are reported as missing.

    Raises:
        HTTPException: If job not found or not owned by the caller.
    """
    repo = JobRepository(session)
    job = await repo.get_job(job_id)

    if job is None or job.owner_id != current_user.owner_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return JobResponse.model_validate(job)


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="List the caller's jobs with optional status filtering.",
)
async def list_jobs(
    current_user: CurrentUser,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    status: JobStatus | None = Query(default=None),
    session: AsyncSession = Depends(get_async_session),
) -> JobListResponse:
    """
    List jobs for the current caller, lowest priority value first.

    Args:
        current_user: Authenticated caller context.
        page: Page number (1-indexed).
        page_size: Number of items per page.
        status: Optional status filter.
        session: Database session.

    Returns:
        JobListResponse with paginated jobs.
    """
    repo = JobRepository(session)
    offset = (page - 1) * page_size

    jobs, total = await repo.list_jobs(
        owner_id=current_user.owner_id,
        status=status,
        limit=page_size,
        offset=offset,
    )

    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
        has_next=(page * page_size) < total,
    )
