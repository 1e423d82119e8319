"""
Type definitions for the job queue.
Contains input/output type definitions for all functions, grouped by module.
"""

from queuewizard.types.api import (
    CreateJobRequest,
    ErrorResponse,
    HealthResponse,
    JobListResponse,
    JobResponse,
    QueueStatusResponse,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
)
from queuewizard.types.job import (
    JobResult,
    OutboundRequest,
    SchedulerStatus,
)

__all__ = [
    # API types
    "CreateJobRequest",
    "JobResponse",
    "JobListResponse",
    "QueueStatusResponse",
    "SignupRequest",
    "SigninRequest",
    "UserResponse",
    "TokenResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "JobResult",
    "OutboundRequest",
    "SchedulerStatus",
]
