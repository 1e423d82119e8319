"""
Executor for claimed jobs.

Performs exactly one outbound HTTP request per claimed job, classifies the
outcome and reports it to the job store. Retries never happen in here: a
failed job is requeued and picked up again by a later scheduler tick.
"""

import asyncio
import json
import logging
import time

import httpx

from queuewizard.constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ERROR_BODY_SNIPPET_LENGTH,
    JSON_CONTENT_TYPE,
    SPAN_EXECUTE_JOB,
    HttpMethod,
)
from queuewizard.db.models import Job
from queuewizard.db.store import JobStore
from queuewizard.observability.metrics import get_metrics
from queuewizard.observability.tracing import get_tracer
from queuewizard.types.job import JobResult, OutboundRequest
from queuewizard.worker.retry import RetryDecision, decide

logger = logging.getLogger(__name__)


class RequestBuildError(Exception):
    """Stored job data cannot be turned into an HTTP request."""


def parse_headers(raw: str | None) -> dict[str, str]:
    """
    Parse stored header JSON into an ordered mapping.

    Raises:
        RequestBuildError: If the text is not a JSON object of strings.
    """
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise RequestBuildError(f"Invalid job headers: {e}") from e

    if not isinstance(parsed, dict) or not all(
        isinstance(key, str) and isinstance(value, str)
        for key, value in parsed.items()
    ):
        raise RequestBuildError("Invalid job headers: expected an object of string values")

    return parsed


def parse_body(raw: str | None) -> str | None:
    """
    Re-serialize a stored JSON body for sending.

    Raises:
        RequestBuildError: If the stored text is not valid JSON.
    """
    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RequestBuildError(f"Invalid job body: {e}") from e

    return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)


def build_request(job: Job) -> OutboundRequest:
    """
    Build the outbound request for a job.

    When a body is present, content-type and accept default to JSON unless
    the job already sets them (header names compared case-insensitively).
    """
    request = OutboundRequest(
        method=job.method.upper(),
        url=job.url,
        headers=parse_headers(job.headers),
        content=parse_body(job.body),
    )

    if request.content is not None:
        if not request.has_header("content-type"):
            request.headers["content-type"] = JSON_CONTENT_TYPE
        if not request.has_header("accept"):
            request.headers["accept"] = JSON_CONTENT_TYPE

    return request


def serialize_response(response: httpx.Response) -> str:
    """
    Turn a successful response into the stored result.

    JSON responses are re-serialized compactly; anything else, including
    JSON that does not parse, is stored as raw text.
    """
    text = response.text
    media_type = response.headers.get("content-type", "").split(";")[0].strip().lower()

    if media_type == JSON_CONTENT_TYPE or media_type.endswith("+json"):
        try:
            return json.dumps(json.loads(text), separators=(",", ":"), ensure_ascii=False)
        except ValueError:
            return text

    return text


class Executor:
    """
    Runs one claimed job and records the outcome.

    Every invocation ends in exactly one store write: complete, requeue or
    fail. Unexpected errors are treated as failed attempts, and so is a
    cancellation, which is re-raised once the attempt has been recorded.
    """

    def __init__(
        self,
        store: JobStore,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the executor.

        Args:
            store: Job store to report outcomes to.
            request_timeout: Upper bound, in seconds, for one outbound request.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self._store = store
        self._timeout = request_timeout
        self._transport = transport
        self._metrics = get_metrics()

    @property
    def request_timeout(self) -> float:
        return self._timeout

    async def run(self, job: Job) -> JobResult:
        """
        Execute a claimed job and report the outcome.

        Args:
            job: A job in PROCESSING state, as returned by claim_next().

        Returns:
            JobResult describing the attempt.
        """
        start_time = time.monotonic()

        logger.info(
            "Job started",
            extra={
                "job_id": str(job.id),
                "attempts": job.attempts,
                "method": job.method,
                "url": job.url,
            }
        )

        with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
            span.set_attribute("job_id", str(job.id))
            span.set_attribute("attempts", job.attempts)

            cancelled: asyncio.CancelledError | None = None
            try:
                result = await self._perform(job)
            except asyncio.CancelledError as e:
                # Interrupted from outside (event loop teardown); still record the attempt
                cancelled = e
                result = JobResult(success=False, error="Execution cancelled")
            except Exception as e:
                logger.exception(
                    "Unexpected error executing job",
                    extra={"job_id": str(job.id), "error": str(e)}
                )
                result = JobResult(
                    success=False,
                    error=f"Unexpected error: {type(e).__name__}: {e}",
                )

            if result.status_code is not None:
                span.set_attribute("http.status_code", result.status_code)

        duration = time.monotonic() - start_time
        result.duration_ms = duration * 1000

        if cancelled is not None:
            # Shielded so a second cancellation cannot interrupt the store write
            outcome = await asyncio.shield(self._report(job, result))
            self._metrics.record_job_finished(outcome, duration)
            raise cancelled

        outcome = await self._report(job, result)
        self._metrics.record_job_finished(outcome, duration)

        return result

    async def _perform(self, job: Job) -> JobResult:
        """Issue the single outbound request and classify the response."""
        try:
            request = build_request(job)
        except RequestBuildError as e:
            return JobResult(success=False, error=str(e))

        # GET requests never carry a body
        content = request.content if request.method != HttpMethod.GET else None

        try:
            async with asyncio.timeout(self._timeout):
                async with httpx.AsyncClient(
                    transport=self._transport,
                    timeout=self._timeout,
                    follow_redirects=True,
                ) as client:
                    response = await client.request(
                        method=request.method,
                        url=request.url,
                        headers=request.headers,
                        content=content,
                    )
        except (httpx.TimeoutException, TimeoutError):
            return JobResult(
                success=False,
                error=f"Request timed out after {self._timeout:g}s",
            )
        except httpx.HTTPError as e:
            return JobResult(
                success=False,
                error=f"Request failed: {type(e).__name__}: {e}",
            )

        if not response.is_success:
            return JobResult(
                success=False,
                status_code=response.status_code,
                error=(
                    f"Request failed with status {response.status_code}: "
                    f"{response.text[:ERROR_BODY_SNIPPET_LENGTH]}"
                ),
            )

        return JobResult(
            success=True,
            status_code=response.status_code,
            output=serialize_response(response),
        )

    async def _report(self, job: Job, result: JobResult) -> str:
        """
        Write the outcome of the attempt to the store.

        Returns:
            The outcome label: completed, requeued, failed or unreported.
        """
        duration = f"{(result.duration_ms or 0) / 1000:.2f}s"

        try:
            if result.success:
                await self._store.complete(job.id, result.output or "")
                logger.info(
                    "Job completed successfully",
                    extra={"job_id": str(job.id), "duration": duration}
                )
                return "completed"

            error = result.error or "Unknown error"
            decision = decide(job.attempts, self._store.max_attempts)

            if decision is RetryDecision.REQUEUE:
                await self._store.requeue(job.id, error)
                logger.warning(
                    "Job failed, queued for retry",
                    extra={
                        "job_id": str(job.id),
                        "attempts": job.attempts,
                        "error": error,
                        "duration": duration,
                    }
                )
                return "requeued"

            await self._store.fail(job.id, error)
            logger.warning(
                "Job failed, attempts exhausted",
                extra={
                    "job_id": str(job.id),
                    "attempts": job.attempts,
                    "error": error,
                    "duration": duration,
                }
            )
            return "failed"

        except Exception:
            logger.exception(
                "Failed to report job outcome",
                extra={"job_id": str(job.id), "success": result.success}
            )
            return "unreported"
