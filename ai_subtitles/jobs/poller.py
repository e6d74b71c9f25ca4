"""Long-poll loop for asynchronous server jobs.

Transcription, translation and language detection all follow the same
protocol: an initiate call returns either a finished result or a correlation
id, and a status endpoint is then polled until the job reaches a terminal
state. :class:`JobPoller` owns that loop for one status endpoint.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..models.api import JobResponse, JobStatus
from ..utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_POLL_TIMEOUT = 7200.0

StatusCheck = Callable[[str], Awaitable[JobResponse]]
ProgressCallback = Callable[["PollProgress"], None]


class JobError(Exception):
    """Base class for job failures."""

    def __init__(self, message: str, correlation_id: Optional[str] = None):
        super().__init__(message)
        self.correlation_id = correlation_id


class JobFailedError(JobError):
    """The server reported ERROR, or a status check failed."""


class JobTimeoutError(JobError):
    """The job did not finish within the polling timeout, or the server reported TIMEOUT."""


class JobCancelledError(JobError):
    """Polling was stopped by the caller."""


@dataclass(frozen=True)
class PollProgress:
    """Emitted before every status check."""

    correlation_id: str
    elapsed: float
    attempt: int

    @property
    def elapsed_seconds(self) -> int:
        return int(self.elapsed)


class JobPoller:
    """Polls ``check_status`` until a terminal state or the timeout.

    Args:
        check_status: Status endpoint, e.g. ``client.check_transcription_status``
        interval: Seconds between status checks
        timeout: Ceiling on seconds elapsed since the first check
        clock: Monotonic time source
        sleep: Awaitable sleep used between checks
        label: Job kind used in log and error messages
    """

    def __init__(
        self,
        check_status: StatusCheck,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        label: str = "Job",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._check_status = check_status
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self.label = label

    async def poll(
        self,
        correlation_id: str,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Any:
        """Poll until the job completes and return its data.

        Raises:
            JobFailedError: ERROR status, or the status check itself failed
            JobTimeoutError: TIMEOUT status, or ``timeout`` elapsed
            JobCancelledError: ``cancel_token`` was cancelled
        """
        started = self._clock()
        attempt = 0
        logger.info(f"{self.label} {correlation_id}: polling every {self.interval:.0f}s")

        while True:
            self._raise_if_cancelled(cancel_token, correlation_id)
            attempt += 1
            elapsed = self._clock() - started
            if on_progress is not None:
                self._emit(on_progress, PollProgress(correlation_id, elapsed, attempt))

            response = await self._check(correlation_id)
            self._raise_if_cancelled(cancel_token, correlation_id)

            if response.status is JobStatus.COMPLETED:
                logger.info(f"{self.label} {correlation_id}: completed after {attempt} check(s)")
                return response.data
            if response.status is JobStatus.ERROR:
                raise JobFailedError(
                    f"{self.label} failed: {response.error_message}", correlation_id
                )
            if response.status is JobStatus.TIMEOUT:
                raise JobTimeoutError(f"{self.label} timed out on the server", correlation_id)

            logger.debug(f"{self.label} {correlation_id}: {response.status.value} after {elapsed:.0f}s")
            if self._clock() - started >= self.timeout:
                minutes = int(self.timeout // 60)
                raise JobTimeoutError(
                    f"{self.label} timed out after {minutes} minutes", correlation_id
                )

            if cancel_token is not None:
                if not await cancel_token.sleep(self.interval, self._sleep):
                    self._raise_if_cancelled(cancel_token, correlation_id)
            else:
                await self._sleep(self.interval)

    async def _check(self, correlation_id: str) -> JobResponse:
        try:
            return await self._check_status(correlation_id)
        except JobError:
            raise
        except Exception as e:
            logger.error(f"{self.label} {correlation_id}: status check raised {e!r}")
            raise JobFailedError(f"{self.label} failed: {e}", correlation_id) from e

    def _raise_if_cancelled(self, cancel_token: Optional[CancellationToken], correlation_id: str) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            logger.info(f"{self.label} {correlation_id}: polling cancelled")
            raise JobCancelledError(cancel_token.reason or "Polling cancelled", correlation_id)

    @staticmethod
    def _emit(callback: ProgressCallback, event: PollProgress) -> None:
        try:
            callback(event)
        except Exception as e:
            logger.error(f"Progress listener failed: {e}")


async def run_job(
    initiate: Callable[[], Awaitable[JobResponse]],
    poller: JobPoller,
    cancel_token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Any:
    """Initiate a job and wait for its result.

    The initiate call finishes before the first status check is issued.
    """
    response = await initiate()
    if response.status is JobStatus.ERROR:
        raise JobFailedError(f"{poller.label} failed: {response.error_message}")
    if response.status is JobStatus.TIMEOUT:
        raise JobTimeoutError(f"{poller.label} timed out on the server")
    if response.status is JobStatus.COMPLETED and response.data is not None:
        return response.data
    if not response.correlation_id:
        raise JobFailedError(f"{poller.label} failed: unexpected response format")
    return await poller.poll(response.correlation_id, cancel_token, on_progress)
