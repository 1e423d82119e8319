"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - PENDING -> PROCESSING (claimed, attempts incremented)
    - PROCESSING -> COMPLETED (2xx response)
    - PROCESSING -> PENDING (failure, attempts < max_attempts)
    - PROCESSING -> FAILED (failure, attempts exhausted)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class HttpMethod(StrEnum):
    """HTTP methods a job may use for its outbound request."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# Default values
DEFAULT_PRIORITY = 0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_POLL_INTERVAL_SECONDS = 2.5
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

# Outbound request handling
JSON_CONTENT_TYPE = "application/json"
ERROR_BODY_SNIPPET_LENGTH = 1000

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_DEPTH = "job_queue_depth"
METRIC_JOBS_CLAIMED = "jobs_claimed_total"
METRIC_JOBS_FINISHED = "jobs_finished_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_JOBS_IN_FLIGHT = "jobs_in_flight"
METRIC_SCHEDULER_TICKS = "scheduler_ticks_total"

# Trace span names
SPAN_CLAIM_JOB = "claim_job"
SPAN_EXECUTE_JOB = "execute_job"
