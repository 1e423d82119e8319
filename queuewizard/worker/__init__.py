"""
Worker module.
Contains the job execution engine: retry policy, executor, dispatcher and scheduler.
"""

from queuewizard.worker.dispatcher import Dispatcher
from queuewizard.worker.executor import Executor
from queuewizard.worker.main import build_scheduler, run
from queuewizard.worker.retry import RetryDecision, decide
from queuewizard.worker.scheduler import Scheduler

__all__ = [
    "Dispatcher",
    "Executor",
    "RetryDecision",
    "Scheduler",
    "build_scheduler",
    "decide",
    "run",
]
