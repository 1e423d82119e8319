"""
Integration tests for the SQL job store.

Each store operation opens and commits its own session, so these tests
observe state through a separate session the way another process would.
"""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queuewizard.constants import HttpMethod, JobStatus
from queuewizard.db.models import Job
from queuewizard.db.repository import JobRepository
from queuewizard.db.store import SqlJobStore


async def submit(
    session_factory: async_sessionmaker[AsyncSession],
    count: int,
    priority: int = 0,
) -> list[Job]:
    async with session_factory() as session:
        repo = JobRepository(session)
        jobs = [
            await repo.create_job(
                owner_id="test-owner",
                method=HttpMethod.POST,
                url=f"https://example.com/hooks/{i}",
                priority=priority,
            )
            for i in range(count)
        ]
        await session.commit()
    return jobs


async def load(session_factory: async_sessionmaker[AsyncSession], job: Job) -> Job:
    async with session_factory() as session:
        return await JobRepository(session).get_job(job.id)


class TestSqlJobStore:
    """Tests for SqlJobStore."""

    async def test_claim_is_committed(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test that a claim is visible to other sessions immediately."""
        [job] = await submit(session_factory, 1)

        claimed = await sql_store.claim_next()

        assert claimed.id == job.id
        stored = await load(session_factory, job)
        assert stored.status == JobStatus.PROCESSING
        assert stored.attempts == 1

    async def test_claim_empty_queue(self, sql_store: SqlJobStore):
        """Test that claiming from an empty queue returns None."""
        assert await sql_store.claim_next() is None

    async def test_single_job_claimed_once(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test that concurrent claimers racing for one job yield one winner."""
        [job] = await submit(session_factory, 1)

        results = await asyncio.gather(*(sql_store.claim_next() for _ in range(10)))
        winners = [claimed for claimed in results if claimed is not None]

        assert len(winners) == 1
        assert winners[0].id == job.id
        assert winners[0].attempts == 1

    async def test_concurrent_claims_never_overlap(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test that concurrent claimers never receive the same job."""
        jobs = await submit(session_factory, 20)

        results = await asyncio.gather(*(sql_store.claim_next() for _ in range(30)))
        claimed = [job.id for job in results if job is not None]

        assert len(claimed) == 20
        assert set(claimed) == {job.id for job in jobs}

    async def test_competing_stores_never_overlap(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test that two store instances sharing the table split the work."""
        await submit(session_factory, 10)
        first = SqlJobStore(max_attempts=3, session_factory=session_factory)
        second = SqlJobStore(max_attempts=3, session_factory=session_factory)

        async def drain(store: SqlJobStore) -> list:
            claimed = []
            while (job := await store.claim_next()) is not None:
                claimed.append(job.id)
            return claimed

        a, b = await asyncio.gather(drain(first), drain(second))

        assert len(a) + len(b) == 10
        assert not set(a) & set(b)

    async def test_complete_round_trip(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test completing a claimed job through the store."""
        [job] = await submit(session_factory, 1)
        await sql_store.claim_next()

        completed = await sql_store.complete(job.id, '{"ok":true}')

        assert completed.status == JobStatus.COMPLETED
        stored = await load(session_factory, job)
        assert stored.status == JobStatus.COMPLETED
        assert stored.result == '{"ok":true}'
        assert stored.completed_at is not None

    async def test_report_on_unclaimed_job_is_rejected(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test that report operations on a pending job change nothing."""
        [job] = await submit(session_factory, 1)

        assert await sql_store.complete(job.id, "ok") is None
        assert await sql_store.requeue(job.id, "boom") is None
        assert await sql_store.fail(job.id, "boom") is None

        stored = await load(session_factory, job)
        assert stored.status == JobStatus.PENDING
        assert stored.attempts == 0

    async def test_retry_cycle_until_failed(
        self,
        sql_store: SqlJobStore,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        """Test requeue while attempts remain, then terminal failure."""
        [job] = await submit(session_factory, 1)

        for attempt in (1, 2):
            claimed = await sql_store.claim_next()
            assert claimed.attempts == attempt
            assert await sql_store.fail(job.id, "boom") is None
            requeued = await sql_store.requeue(job.id, f"boom {attempt}")
            assert requeued.status == JobStatus.PENDING

        claimed = await sql_store.claim_next()
        assert claimed.attempts == 3
        assert await sql_store.requeue(job.id, "boom 3") is None

        failed = await sql_store.fail(job.id, "boom 3")
        assert failed.status == JobStatus.FAILED

        assert await sql_store.claim_next() is None
        stored = await load(session_factory, job)
        assert stored.status == JobStatus.FAILED
        assert stored.attempts == 3
        assert stored.error_message == "boom 3"
