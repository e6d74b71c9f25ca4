"""Tracks in-flight requests so a UI can show a busy indicator."""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Idle must persist this long before "ended" is announced, so back-to-back
# requests do not flicker the indicator.
END_SETTLE_SECONDS = 0.3


@runtime_checkable
class ActivityListener(Protocol):
    def on_activity_start(self, context: str) -> None:
        ...

    def on_activity_end(self) -> None:
        ...

    def on_context_update(self, contexts: List[str]) -> None:
        ...


class ActivityTracker:
    """Registry of active request ids with their human-readable context.

    Args:
        end_settle_seconds: Delay before announcing idle; 0 announces at once
    """

    def __init__(self, end_settle_seconds: float = END_SETTLE_SECONDS):
        self._active: Dict[str, str] = {}
        self._listeners: List[ActivityListener] = []
        self._end_settle_seconds = end_settle_seconds
        self._pending_end: Optional[asyncio.TimerHandle] = None

    def add_listener(self, listener: ActivityListener) -> Callable[[], None]:
        """Register ``listener``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start_activity(self, request_id: str, context: str) -> None:
        was_idle = not self._active
        self._active[request_id] = context
        self._cancel_pending_end()
        if was_idle:
            self._notify("on_activity_start", context)
        self._notify("on_context_update", self.get_active_contexts())

    def end_activity(self, request_id: str) -> None:
        if self._active.pop(request_id, None) is None:
            return
        self._notify("on_context_update", self.get_active_contexts())
        if not self._active:
            self._schedule_end()

    def is_active(self) -> bool:
        return bool(self._active)

    def get_active_count(self) -> int:
        return len(self._active)

    def get_active_contexts(self) -> List[str]:
        return list(self._active.values())

    def get_current_context(self) -> Optional[str]:
        """Most recently started context still in flight."""
        if not self._active:
            return None
        return next(reversed(self._active.values()))

    @staticmethod
    def generate_request_id() -> str:
        return f"req_{int(time.time() * 1000)}_{random.randrange(36 ** 9):09x}"

    def _schedule_end(self) -> None:
        if self._end_settle_seconds <= 0:
            self._notify_end_if_idle()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._notify_end_if_idle()
            return
        self._cancel_pending_end()
        self._pending_end = loop.call_later(self._end_settle_seconds, self._notify_end_if_idle)

    def _cancel_pending_end(self) -> None:
        if self._pending_end is not None:
            self._pending_end.cancel()
            self._pending_end = None

    def _notify_end_if_idle(self) -> None:
        self._pending_end = None
        if not self._active:
            self._notify("on_activity_end")

    def _notify(self, method: str, *args) -> None:
        for listener in list(self._listeners):
            callback = getattr(listener, method, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Activity listener {method} failed: {e}")
