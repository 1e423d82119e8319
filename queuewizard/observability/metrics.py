"""
Prometheus metrics collection.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

from queuewizard.constants import (
    METRIC_QUEUE_DEPTH,
    METRIC_JOBS_CLAIMED,
    METRIC_JOBS_FINISHED,
    METRIC_JOB_DURATION,
    METRIC_JOBS_IN_FLIGHT,
    METRIC_SCHEDULER_TICKS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Queue depth by status
    - Claims and finished attempts by outcome
    - Attempt duration
    - In-flight executions
    - Scheduler ticks
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        # Queue depth gauge (by status)
        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of jobs in each status",
            ["status"],
            registry=self._registry,
        )

        # Jobs claimed counter
        self.jobs_claimed = Counter(
            METRIC_JOBS_CLAIMED,
            "Total number of jobs claimed",
            ["worker_id"],
            registry=self._registry,
        )

        # Finished attempts counter
        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of finished attempts",
            ["outcome"],
            registry=self._registry,
        )

        # Attempt duration histogram
        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job attempt duration in seconds",
            ["outcome"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        # In-flight gauge
        self.jobs_in_flight = Gauge(
            METRIC_JOBS_IN_FLIGHT,
            "Number of executions currently in flight",
            registry=self._registry,
        )

        # Scheduler ticks counter
        self.scheduler_ticks = Counter(
            METRIC_SCHEDULER_TICKS,
            "Total number of scheduler ticks",
            ["result"],
            registry=self._registry,
        )

    def record_job_claimed(self, worker_id: str, count: int = 1) -> None:
        """Record job claims."""
        self.jobs_claimed.labels(worker_id=worker_id).inc(count)

    def record_job_finished(self, outcome: str, duration_seconds: float) -> None:
        """Record the end of one attempt."""
        self.jobs_finished.labels(outcome=outcome).inc()
        self.job_duration.labels(outcome=outcome).observe(duration_seconds)

    def set_in_flight(self, count: int) -> None:
        """Update the in-flight gauge."""
        self.jobs_in_flight.set(count)

    def record_tick(self, result: str) -> None:
        """Record a scheduler tick (ok, skipped or error)."""
        self.scheduler_ticks.labels(result=result).inc()

    def update_queue_depth(self, counts: dict[str, int]) -> None:
        """Update queue depth per status."""
        for status, count in counts.items():
            self.queue_depth.labels(status=status).set(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
