"""Resilient request execution: connectivity gating, classify-and-retry, activity tracking."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from ..config.network import NetworkConfigManager, get_network_config
from ..utils.cancellation import CancellationToken
from .activity import ActivityTracker
from .connectivity import ConnectivityMonitor
from .errors import (
    APIRequestError,
    NetworkError,
    NetworkErrorType,
    NetworkRequestError,
    OfflineError,
    categorize_network_error,
    message_key_for,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestFn = Callable[[], Awaitable[T]]

# Failures the policy knows how to classify. Anything else is a bug and
# propagates untouched after a single attempt.
EXPECTED_ERRORS = (
    APIRequestError,
    httpx.HTTPError,
    OSError,
    asyncio.TimeoutError,
    json.JSONDecodeError,
)


class RequestExecutor:
    """Runs one logical request through the retry policy.

    Args:
        config: Rule table (shared one when omitted)
        connectivity: Device/API connectivity signal
        activity: Tracker notified around every logical request
        sleep: Awaitable sleep used for backoff waits
    """

    def __init__(
        self,
        config: Optional[NetworkConfigManager] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        activity: Optional[ActivityTracker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or get_network_config()
        self.connectivity = connectivity or ConnectivityMonitor()
        self.activity = activity or ActivityTracker()
        self._sleep = sleep

    async def execute_with_retry(
        self,
        request_fn: RequestFn,
        context: str,
        max_retries: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        """Run ``request_fn`` with offline fast-fail, retries and activity tracking.

        Raises:
            NetworkRequestError: Final classified failure
        """
        request_id = self.activity.generate_request_id()
        self.activity.start_activity(request_id, context)
        try:
            if not self.connectivity.is_online():
                raise self._offline_failure(OfflineError("Device is offline"), context)
            return await self.retry_with_backoff(
                lambda: self.execute(request_fn, context),
                max_retries=max_retries,
                context=context,
                cancel_token=cancel_token,
            )
        finally:
            self.activity.end_activity(request_id)

    async def execute(self, request_fn: RequestFn, context: str) -> T:
        """One attempt: re-check connectivity, call, log the outcome."""
        if not self.connectivity.is_online():
            raise OfflineError("Device is offline")
        if not self.connectivity.is_fully_online():
            raise OfflineError("API server unreachable")

        log_settings = self.config.get_logging_config()
        try:
            result = await request_fn()
        except EXPECTED_ERRORS as e:
            if log_settings.enabled and log_settings.log_errors:
                logger.warning(f"{context} failed: {e}")
            raise
        if log_settings.enabled and log_settings.log_success:
            logger.info(f"{context} succeeded")
        return result

    async def retry_with_backoff(
        self,
        fn: RequestFn,
        max_retries: Optional[int] = None,
        context: str = "request",
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        """Call ``fn`` until it succeeds, fails non-retryably, or the budget runs out.

        The budget for a given failure is the smaller of ``max_retries`` and
        the matched rule's own ``max_retries``.
        """
        retry_settings = self.config.get_retry_config()
        if max_retries is None:
            max_retries = retry_settings.max_attempts
        if not retry_settings.enabled:
            max_retries = 0
        log_settings = self.config.get_logging_config()

        attempt = 0
        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                return await fn()
            except EXPECTED_ERRORS as error:
                network_error = categorize_network_error(
                    error, self.config, is_online=self.connectivity.is_online()
                )
                if not network_error.is_retryable:
                    raise NetworkRequestError(network_error, attempts=attempt + 1) from error

                rule = self.config.get_error_type_config(network_error.type.value)
                budget = max_retries if rule is None else min(max_retries, rule.max_retries)
                if attempt >= budget:
                    if log_settings.enabled and log_settings.log_errors:
                        logger.error(
                            f"{context} gave up after {attempt + 1} attempt(s): "
                            f"{network_error.type.value}"
                        )
                    raise NetworkRequestError(network_error, attempts=attempt + 1) from error

                delay = self.config.get_delay_for_error_type(network_error.type.value, attempt)
                if log_settings.enabled and log_settings.log_retries:
                    logger.info(
                        f"{context}: {network_error.type.value} error, "
                        f"retry {attempt + 1}/{budget} in {delay:.1f}s"
                    )
                if cancel_token is not None:
                    if not await cancel_token.sleep(delay, self._sleep):
                        cancel_token.raise_if_cancelled()
                else:
                    await self._sleep(delay)
                attempt += 1

    def _offline_failure(self, error: OfflineError, context: str) -> NetworkRequestError:
        logger.warning(f"{context} skipped: device is offline")
        network_error = NetworkError(
            type=NetworkErrorType.OFFLINE,
            message=self.config.get_user_message(message_key_for(NetworkErrorType.OFFLINE)),
            is_retryable=True,
            original_error=error,
        )
        return NetworkRequestError(network_error, attempts=0)
