"""
Job store contract consumed by the execution engine.

The engine only ever talks to a JobStore: it claims work and reports the
outcome of each attempt. Correctness of the at-most-one-executor-per-job
invariant rests entirely on claim_next being one atomic operation.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queuewizard.constants import DEFAULT_MAX_ATTEMPTS, SPAN_CLAIM_JOB
from queuewizard.db.connection import get_session_context
from queuewizard.db.models import Job
from queuewizard.db.repository import JobRepository
from queuewizard.observability.tracing import get_tracer

logger = logging.getLogger(__name__)


class JobStore(ABC):
    """
    Durable table of jobs, as seen by the engine.

    Implementations must make claim_next a single indivisible
    select-and-update. A separate read followed by a write is not acceptable.
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.max_attempts = max_attempts

    @abstractmethod
    async def claim_next(self, eligible_before: datetime | None = None) -> Job | None:
        """
        Claim the highest-priority, oldest pending job.

        Args:
            eligible_before: When given, jobs updated after this instant are
                skipped. A scheduler tick passes its start time so a job
                requeued during the tick waits for the next one.

        Returns:
            The job in PROCESSING state with attempts incremented, or None.
        """

    @abstractmethod
    async def complete(self, job_id: UUID, result: str) -> Job | None:
        """Mark a job completed with its serialized result."""

    @abstractmethod
    async def requeue(self, job_id: UUID, error_message: str) -> Job | None:
        """Return a job to pending. Only legal while attempts < max_attempts."""

    @abstractmethod
    async def fail(self, job_id: UUID, error_message: str) -> Job | None:
        """Terminally fail a job. Only legal once attempts >= max_attempts."""


class SqlJobStore(JobStore):
    """
    JobStore backed by the jobs table.

    Every operation runs in its own session and is committed before
    returning, so a claim is visible to other processes immediately.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        """
        Initialize the store.

        Args:
            max_attempts: Configured attempt ceiling.
            session_factory: Optional factory; defaults to the global one
                created by init_db().
        """
        super().__init__(max_attempts)
        self._session_factory = session_factory

    async def claim_next(self, eligible_before: datetime | None = None) -> Job | None:
        with get_tracer().start_as_current_span(SPAN_CLAIM_JOB):
            async with get_session_context(self._session_factory) as session:
                repo = JobRepository(session)
                return await repo.claim_next(self.max_attempts, eligible_before)

    async def complete(self, job_id: UUID, result: str) -> Job | None:
        async with get_session_context(self._session_factory) as session:
            repo = JobRepository(session)
            job = await repo.complete_job(job_id, result)

        if job is None:
            logger.warning(
                "Completion ignored, job is not processing",
                extra={"job_id": str(job_id)}
            )
        return job

    async def requeue(self, job_id: UUID, error_message: str) -> Job | None:
        async with get_session_context(self._session_factory) as session:
            repo = JobRepository(session)
            job = await repo.requeue_job(job_id, error_message, self.max_attempts)

        if job is None:
            logger.warning(
                "Requeue rejected, job is not processing or has no attempts left",
                extra={"job_id": str(job_id)}
            )
        return job

    async def fail(self, job_id: UUID, error_message: str) -> Job | None:
        async with get_session_context(self._session_factory) as session:
            repo = JobRepository(session)
            job = await repo.fail_job(job_id, error_message, self.max_attempts)

        if job is None:
            logger.warning(
                "Failure rejected, job is not processing or still has attempts left",
                extra={"job_id": str(job_id)}
            )
        return job
