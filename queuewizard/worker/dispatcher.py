"""
Concurrency-bounded dispatch of claimed jobs.
"""

import asyncio
import functools
import logging
from uuid import UUID

from queuewizard.constants import DEFAULT_MAX_CONCURRENT
from queuewizard.db.models import Job
from queuewizard.observability.logging import bind_context
from queuewizard.observability.metrics import get_metrics
from queuewizard.worker.executor import Executor

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Launches executor runs as background tasks under a fixed ceiling.

    The in-flight counter is process-local and only shapes concurrency;
    it is not what keeps two executors off the same job (the store's atomic
    claim does that). Running tasks are kept in a registry so shutdown can
    wait for them.
    """

    def __init__(
        self,
        executor: Executor,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ):
        """
        Initialize the dispatcher.

        Args:
            executor: Executor that runs each claimed job.
            max_concurrent: Maximum number of executions in flight.
        """
        self._executor = executor
        self._max_concurrent = max_concurrent
        self._in_flight = 0
        self._tasks: dict[UUID, asyncio.Task] = {}
        self._metrics = get_metrics()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    def has_capacity(self) -> bool:
        """Check whether another job may be launched."""
        return self._in_flight < self._max_concurrent

    def launch(self, job: Job) -> asyncio.Task:
        """
        Start executing a job without waiting for it.

        The counter is released by a done-callback, which fires on every
        exit path including cancellation before the task ever ran.

        Args:
            job: A claimed job.

        Returns:
            The task running the job.
        """
        self._in_flight += 1
        self._metrics.set_in_flight(self._in_flight)

        task = asyncio.create_task(self._execute(job), name=f"job-{job.id}")
        self._tasks[job.id] = task
        task.add_done_callback(functools.partial(self._on_done, job.id))

        return task

    async def _execute(self, job: Job) -> None:
        # Runs in its own task, so the binding stays local to this job
        bind_context(job_id=str(job.id))
        await self._executor.run(job)

    def _on_done(self, job_id: UUID, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        self._in_flight = max(0, self._in_flight - 1)
        self._metrics.set_in_flight(self._in_flight)

        if task.cancelled():
            logger.warning(
                "Job execution cancelled",
                extra={"job_id": str(job_id)}
            )
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                "Job execution raised",
                exc_info=exc,
                extra={"job_id": str(job_id)}
            )

    async def drain(self, timeout: float | None = None) -> int:
        """
        Wait for in-flight executions to finish.

        Args:
            timeout: Seconds to wait at most; None waits indefinitely.

        Returns:
            Number of executions still running when the wait ended.
        """
        tasks = list(self._tasks.values())
        if not tasks:
            return 0

        logger.info(f"Waiting for {len(tasks)} jobs to complete")
        _, pending = await asyncio.wait(tasks, timeout=timeout)

        if pending:
            logger.warning(f"{len(pending)} jobs still running after drain timeout")

        return len(pending)
