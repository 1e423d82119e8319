"""
Retry policy for failed attempts.

Attempts are counted once, at claim time, so the value passed in already
includes the attempt that just failed.
"""

from enum import StrEnum


class RetryDecision(StrEnum):
    """What to do with a job whose attempt failed."""

    REQUEUE = "requeue"
    TERMINAL_FAIL = "terminal_fail"


def decide(attempts_after_claim: int, max_attempts: int) -> RetryDecision:
    """
    Decide whether a failed job goes back to the queue.

    Args:
        attempts_after_claim: The job's attempts, including the failed one.
        max_attempts: Configured attempt ceiling.

    Returns:
        REQUEUE while attempts remain, TERMINAL_FAIL otherwise.
    """
    if attempts_after_claim < max_attempts:
        return RetryDecision.REQUEUE
    return RetryDecision.TERMINAL_FAIL
