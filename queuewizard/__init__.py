"""
QueueWizard

A single-node HTTP job queue: stores pending HTTP-request jobs and executes
them asynchronously with bounded concurrency, retries, and terminal failure
reporting.
"""

__version__ = "1.0.0"
