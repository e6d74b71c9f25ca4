"""Asynchronous job polling."""

from ..utils.cancellation import CancellationToken
from .poller import (
    JobCancelledError,
    JobError,
    JobFailedError,
    JobPoller,
    JobTimeoutError,
    PollProgress,
    run_job,
)

__all__ = [
    "CancellationToken",
    "JobCancelledError",
    "JobError",
    "JobFailedError",
    "JobPoller",
    "JobTimeoutError",
    "PollProgress",
    "run_job",
]
