"""Device and API connectivity signal."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

API_CONNECTIVITY_CACHE_SECONDS = 30.0

Callback = Callable[[], None]


class ConnectivityMonitor:
    """Holds the "is the device online" flag and a short-lived API probe result.

    The flag is pushed in from outside (a platform hook, a failed probe, a
    test). Listeners fire only when the flag actually changes.

    Args:
        online: Initial device state
        clock: Monotonic time source for the probe cache
        api_cache_seconds: How long a probe result stays authoritative
    """

    def __init__(
        self,
        online: bool = True,
        clock: Callable[[], float] = time.monotonic,
        api_cache_seconds: float = API_CONNECTIVITY_CACHE_SECONDS,
    ):
        self._online = online
        self._clock = clock
        self._api_cache_seconds = api_cache_seconds
        self._api_connected: Optional[bool] = None
        self._api_checked_at = 0.0
        self._listeners: List[Tuple[Optional[Callback], Optional[Callback]]] = []
        self._lock = threading.Lock()

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the device flag and notify listeners on a transition."""
        with self._lock:
            changed = online != self._online
            self._online = online
            listeners = list(self._listeners)
        if not changed:
            return

        logger.info(f"Network connectivity changed: {'online' if online else 'offline'}")
        for on_online, on_offline in listeners:
            callback = on_online if online else on_offline
            if callback is None:
                continue
            try:
                callback()
            except Exception as e:
                logger.error(f"Connectivity listener failed: {e}")

    def add_listener(
        self, on_online: Optional[Callback] = None, on_offline: Optional[Callback] = None
    ) -> Callable[[], None]:
        """Subscribe to transitions; returns an unsubscribe function."""
        entry = (on_online, on_offline)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def record_api_connectivity(self, connected: bool) -> None:
        self._api_connected = connected
        self._api_checked_at = self._clock()

    def api_probe_is_fresh(self) -> bool:
        return (
            self._api_connected is not None
            and self._clock() - self._api_checked_at < self._api_cache_seconds
        )

    def is_fully_online(self) -> bool:
        """Device online and, while a recent probe exists, the API answered it."""
        if not self._online:
            return False
        if self.api_probe_is_fresh():
            return bool(self._api_connected)
        return True

    async def check_api_connectivity(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        session_id: str = "",
        timeout: float = 5.0,
    ) -> bool:
        """Probe the discovery endpoint, reusing a fresh result when available."""
        if not self._online:
            return False
        if self.api_probe_is_fresh():
            return bool(self._api_connected)

        url = f"{base_url.rstrip('/')}/ai/info/discovery"
        try:
            response = await http.get(url, params={"sessionId": session_id}, timeout=timeout)
            connected = response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"API connectivity check failed: {e}")
            connected = False

        self.record_api_connectivity(connected)
        return connected
