"""
Job repository for database operations.
Implements the core data access patterns for job management.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from queuewizard.constants import DEFAULT_PRIORITY, HttpMethod, JobStatus
from queuewizard.db.models import Job, User, next_created_at, utcnow

logger = logging.getLogger(__name__)

# ORM DML options: skip in-session evaluation, refresh identity-mapped rows from RETURNING
_DML_OPTIONS = {"synchronize_session": False, "populate_existing": True}


class JobRepository:
    """
    Repository for job database operations.

    Implements atomic operations for:
    - Job submission
    - Claiming with a single UPDATE ... RETURNING (FOR UPDATE SKIP LOCKED on PostgreSQL)
    - Status transitions guarded by the expected current status
    - Queue status counts
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def create_job(
        self,
        owner_id: str,
        method: HttpMethod | str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | None = None,
        priority: int = DEFAULT_PRIORITY,
    ) -> Job:
        """
        Create a new pending job.

        Args:
            owner_id: Reference to the submitter.
            method: HTTP method of the outbound request.
            url: Target URL.
            headers: Request headers, stored as JSON text.
            body: Serialized request body, if any.
            priority: Lower values are claimed first.

        Returns:
            The created Job.
        """
        now = next_created_at()
        job = Job(
            owner_id=owner_id,
            method=HttpMethod(method).value,
            url=url,
            headers=json.dumps(headers or {}),
            body=body,
            priority=priority,
            status=JobStatus.PENDING,
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        self._session.add(job)
        await self._session.flush()

        logger.info(
            "Created new job",
            extra={"job_id": str(job.id), "owner_id": owner_id, "priority": priority}
        )
        return job

    async def get_job(self, job_id: UUID) -> Job | None:
        """
        Get a job by ID.

        Args:
            job_id: The job UUID.

        Returns:
            The Job or None if not found.
        """
        stmt = select(Job).where(Job.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        owner_id: str,
        status: JobStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Job], int]:
        """
        List jobs for an owner with optional filtering.

        Args:
            owner_id: The submitter reference.
            status: Optional status filter.
            limit: Maximum number of jobs to return.
            offset: Offset for pagination.

        Returns:
            Tuple of (jobs, total_count).
        """
        base_filter = Job.owner_id == owner_id
        if status is not None:
            base_filter = and_(base_filter, Job.status == status)

        count_stmt = select(func.count()).select_from(Job).where(base_filter)
        count_result = await self._session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(Job)
            .where(base_filter)
            .order_by(Job.priority.asc(), Job.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        jobs = result.scalars().all()

        return jobs, total

    async def claim_next(
        self,
        max_attempts: int,
        eligible_before: datetime | None = None,
    ) -> Job | None:
        """
        Atomically claim the next pending job.

        This is the critical path for job distribution. Selection and update
        happen in one statement; the outer status guard turns it into a
        compare-and-set so concurrent callers never receive the same job.

        Args:
            max_attempts: Jobs that already used every attempt are never claimed.
            eligible_before: Skip jobs whose updated_at is later than this,
                so a job requeued after a tick started is left for the next tick.

        Returns:
            The claimed job (status PROCESSING, attempts incremented) or None.
        """
        now = utcnow()
        candidate = aliased(Job, name="candidate")

        conditions = [
            candidate.status == JobStatus.PENDING,
            candidate.attempts < max_attempts,
        ]
        if eligible_before is not None:
            conditions.append(candidate.updated_at <= eligible_before)

        next_id = (
            select(candidate.id)
            .where(*conditions)
            .order_by(candidate.priority.asc(), candidate.created_at.asc())
            .limit(1)
            # Emitted on PostgreSQL, omitted by the SQLite dialect
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == next_id,
                    Job.status == JobStatus.PENDING,
                )
            )
            .values(
                status=JobStatus.PROCESSING,
                attempts=Job.attempts + 1,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(**_DML_OPTIONS)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is not None:
            logger.info(
                "Claimed job",
                extra={"job_id": str(job.id), "attempts": job.attempts}
            )

        return job

    async def complete_job(self, job_id: UUID, result: str) -> Job | None:
        """
        Mark a processing job as successfully completed.

        Args:
            job_id: The job UUID.
            result: Serialized response payload.

        Returns:
            Updated Job or None if the job was not processing.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING,
                )
            )
            .values(
                status=JobStatus.COMPLETED,
                result=result,
                error_message=None,
                completed_at=now,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(**_DML_OPTIONS)
        )

        result_obj = await self._session.execute(stmt)
        return result_obj.scalar_one_or_none()

    async def requeue_job(
        self,
        job_id: UUID,
        error_message: str,
        max_attempts: int,
    ) -> Job | None:
        """
        Return a failed processing job to the queue for another attempt.

        Only legal while attempts < max_attempts; attempts is left untouched
        because the claim already counted this attempt.

        Args:
            job_id: The job UUID.
            error_message: Why the attempt failed.
            max_attempts: Configured attempt ceiling.

        Returns:
            Updated Job or None if the transition was not legal.
        """
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING,
                    Job.attempts < max_attempts,
                )
            )
            .values(
                status=JobStatus.PENDING,
                error_message=error_message,
                result=None,
                updated_at=utcnow(),
            )
            .returning(Job)
            .execution_options(**_DML_OPTIONS)
        )

        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def fail_job(
        self,
        job_id: UUID,
        error_message: str,
        max_attempts: int,
    ) -> Job | None:
        """
        Terminally fail a processing job whose attempts are exhausted.

        Args:
            job_id: The job UUID.
            error_message: Why the last attempt failed.
            max_attempts: Configured attempt ceiling.

        Returns:
            Updated Job or None if the transition was not legal.
        """
        now = utcnow()
        stmt = (
            update(Job)
            .where(
                and_(
                    Job.id == job_id,
                    Job.status == JobStatus.PROCESSING,
                    Job.attempts >= max_attempts,
                )
            )
            .values(
                status=JobStatus.FAILED,
                error_message=error_message,
                result=None,
                completed_at=now,
                updated_at=now,
            )
            .returning(Job)
            .execution_options(**_DML_OPTIONS)
        )

        result = await self._session.execute(stmt)
        job = result.scalar_one_or_none()

        if job is not None:
            logger.warning(
                f"Job failed permanently after {job.attempts} attempts",
                extra={"job_id": str(job_id), "error": error_message}
            )

        return job

    async def get_job_stats(self) -> dict[str, int]:
        """
        Get job counts by status.

        Returns:
            Dictionary of status -> count, with every status present.
        """
        stmt = select(Job.status, func.count()).group_by(Job.status)
        result = await self._session.execute(stmt)

        stats = {status.value: 0 for status in JobStatus}
        for status, count in result.all():
            stats[JobStatus(status).value] = count
        return stats

    async def count_completed_between(self, start: datetime, end: datetime) -> int:
        """Count jobs that completed within [start, end)."""
        stmt = select(func.count()).select_from(Job).where(
            and_(
                Job.status == JobStatus.COMPLETED,
                Job.completed_at >= start,
                Job.completed_at < end,
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def get_queue_counts(self, now: datetime | None = None) -> dict[str, int]:
        """
        Get the counts reported by the queue status read.

        Args:
            now: Reference time; the "today" window is its UTC day.

        Returns:
            Dictionary with pending, processing, failed and completed_today.
        """
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)

        stats = await self.get_job_stats()
        completed_today = await self.count_completed_between(start_of_day, end_of_day)

        return {
            "pending": stats[JobStatus.PENDING.value],
            "processing": stats[JobStatus.PROCESSING.value],
            "failed": stats[JobStatus.FAILED.value],
            "completed_today": completed_today,
        }


class UserRepository:
    """Repository for user accounts."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create_user(self, name: str, email: str, password_hash: str) -> User:
        """
        Create a new user.

        Args:
            name: Display name.
            email: Login email; stored lowercased.
            password_hash: bcrypt hash of the password.

        Returns:
            The created User.

        Raises:
            IntegrityError: If the email is already registered (on flush).
        """
        user = User(
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            created_at=utcnow(),
        )
        self._session.add(user)
        await self._session.flush()

        logger.info("Created new user", extra={"user_id": str(user.id)})
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by login email, ignoring case."""
        stmt = select(User).where(User.email == email.lower())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
