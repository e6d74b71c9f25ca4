"""Cooperative cancellation shared by the retry loop and the job poller."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional


class OperationCancelledError(Exception):
    """Raised at a suspension point after cancel() was called."""


class CancellationToken:
    """One-shot flag checked at every suspension point.

    A token is bound lazily to the running loop the first time something
    waits on it, so it can be created outside of any loop.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "Operation cancelled") -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelledError(self.reason)

    async def wait(self) -> None:
        """Block until cancel() is called."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    async def sleep(self, seconds: float, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> bool:
        """Sleep for ``seconds`` unless cancelled first.

        Returns:
            True if the full sleep elapsed, False if cancellation cut it short
        """
        if self._cancelled:
            return False
        sleeper = asyncio.ensure_future(sleep(seconds))
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
        return not self._cancelled
