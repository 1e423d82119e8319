"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field

from pydantic import BaseModel


class JobResult(BaseModel):
    """
    Result of one execution attempt.
    Returned by the executor after the outcome has been reported.
    """

    success: bool
    output: str | None = None
    error: str | None = None
    status_code: int | None = None
    duration_ms: float | None = None


@dataclass
class OutboundRequest:
    """
    The HTTP request built from a claimed job.
    Headers keep the order they were stored in.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    content: str | None = None

    def has_header(self, name: str) -> bool:
        """Check for a header, ignoring case."""
        lowered = name.lower()
        return any(key.lower() == lowered for key in self.headers)


@dataclass(frozen=True)
class SchedulerStatus:
    """
    Point-in-time utilization of the dispatcher.
    """

    running: bool
    in_flight: int
    max_concurrent: int
