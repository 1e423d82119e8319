"""
Scheduler that keeps the dispatcher's slots filled.

On every tick it claims jobs until the dispatcher is full or the queue is
empty. Ticks fire on a fixed cadence; a tick that fires while the previous
one is still claiming is skipped rather than queued.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from queuewizard.constants import DEFAULT_POLL_INTERVAL_SECONDS
from queuewizard.db.models import utcnow
from queuewizard.db.store import JobStore
from queuewizard.observability.metrics import get_metrics
from queuewizard.types.job import SchedulerStatus
from queuewizard.worker.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Scheduler:
    """
    Periodic driver of the execution engine.

    States:
    - Idle: no tick in progress
    - TickRunning: a tick is claiming and launching jobs

    The timer is an asyncio task that fires a tick and then sleeps. The
    sleep function is injectable so tests can control time, and tick() can
    be awaited directly.
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: Dispatcher,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        worker_id: str = "main",
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the scheduler.

        Args:
            store: Job store to claim from.
            dispatcher: Dispatcher that runs claimed jobs.
            poll_interval: Seconds between ticks.
            worker_id: Identifier used in logs and metrics.
            sleep: Coroutine function used to wait between ticks.
        """
        self._store = store
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._worker_id = worker_id
        self._sleep = sleep

        self._timer_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()
        self._tick_running = False
        self._stopping = False
        self._metrics = get_metrics()

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None

    @property
    def tick_running(self) -> bool:
        return self._tick_running

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    def start(self) -> None:
        """
        Start the timer. Calling start on a running scheduler does nothing.

        Must be called from within a running event loop.
        """
        if self._timer_task is not None:
            return

        self._stopping = False
        logger.info(
            "Scheduler started",
            extra={
                "worker_id": self._worker_id,
                "max_concurrent": self._dispatcher.max_concurrent,
                "poll_interval": self._poll_interval,
            }
        )
        self._timer_task = asyncio.create_task(self._timer_loop(), name="scheduler-timer")

    async def stop(self, drain: bool = False, timeout: float | None = None) -> None:
        """
        Stop the timer. Calling stop on a stopped scheduler does nothing.

        A tick already in progress is allowed to finish launching the jobs
        it has claimed, so no claimed job is left without an executor.

        Args:
            drain: Also wait for in-flight executions to finish.
            timeout: Seconds to wait for the drain. Executions still running
                afterwards are left to finish on their own; they are never
                cancelled from here.
        """
        if self._timer_task is None:
            return

        self._stopping = True
        timer, self._timer_task = self._timer_task, None
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer

        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)
        self._tick_tasks.clear()
        self._tick_running = False

        if drain:
            await self._dispatcher.drain(timeout)

        logger.info("Scheduler stopped", extra={"worker_id": self._worker_id})

    async def _timer_loop(self) -> None:
        while True:
            self._fire_tick()
            await self._sleep(self._poll_interval)

    def _fire_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def tick(self) -> int:
        """
        Fill free dispatcher slots with claimed jobs.

        Only jobs untouched since the tick began are eligible, so a job that
        fails and is requeued while the tick is still claiming gets its next
        attempt on a later tick. A claim error aborts this tick only; the
        next one starts fresh.

        Returns:
            Number of jobs launched.
        """
        if self._tick_running:
            logger.debug("Tick skipped, previous tick still running")
            self._metrics.record_tick("skipped")
            return 0

        self._tick_running = True
        tick_started = utcnow()
        launched = 0
        outcome = "ok"

        try:
            while not self._stopping and self._dispatcher.has_capacity():
                job = await self._store.claim_next(eligible_before=tick_started)
                if job is None:
                    break

                self._dispatcher.launch(job)
                launched += 1

        except Exception as e:
            outcome = "error"
            logger.exception(
                f"Error in scheduler tick: {e}",
                extra={"worker_id": self._worker_id}
            )
        finally:
            self._tick_running = False
            self._metrics.record_tick(outcome)

        if launched:
            self._metrics.record_job_claimed(self._worker_id, launched)
            logger.info(
                f"Launched {launched} jobs",
                extra={"worker_id": self._worker_id, "in_flight": self._dispatcher.in_flight}
            )

        return launched

    def status(self) -> SchedulerStatus:
        """Get current utilization."""
        return SchedulerStatus(
            running=self.is_running,
            in_flight=self._dispatcher.in_flight,
            max_concurrent=self._dispatcher.max_concurrent,
        )
