"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- A controllable clock whose sleep advances time
- In-memory storage, session store and cache wired to that clock
- A deterministic network rule table and request executor
- An API client backed by httpx.MockTransport
"""
from __future__ import annotations

import random
from typing import List

import httpx
import pytest

from ai_subtitles.api.client import AISubtitlesClient
from ai_subtitles.api.session import APISession
from ai_subtitles.cache.manager import CacheManager
from ai_subtitles.config import reset_config
from ai_subtitles.config.network import NetworkConfigManager
from ai_subtitles.network.activity import ActivityTracker
from ai_subtitles.network.connectivity import ConnectivityMonitor
from ai_subtitles.network.executor import RequestExecutor
from ai_subtitles.storage.backends import InMemoryStorage
from ai_subtitles.storage.session import SessionStore
from tests.mocks.api_mocks import BASE_URL, MockAPI

TEST_API_KEY = "test-api-key"


class FakeClock:
    """Manually advanced clock; ``sleep`` records the wait and moves time forward."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the user's real data directory and env overrides."""
    monkeypatch.setenv("AI_SUBTITLES_DATA_DIR", str(tmp_path / "data"))
    for name in ("AI_SUBTITLES_API_KEY", "AI_SUBTITLES_API_BASE_URL", "AI_SUBTITLES_NETWORK_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def session_store(storage, clock) -> SessionStore:
    return SessionStore(storage, clock=clock)


@pytest.fixture
def cache(storage, session_store, clock) -> CacheManager:
    return CacheManager(storage, session_store, clock=clock)


@pytest.fixture
def network_config() -> NetworkConfigManager:
    """Packaged rule table with a seeded jitter source."""
    return NetworkConfigManager(rng=random.Random(1234))


@pytest.fixture
def connectivity(clock) -> ConnectivityMonitor:
    return ConnectivityMonitor(clock=clock)


@pytest.fixture
def activity() -> ActivityTracker:
    return ActivityTracker(end_settle_seconds=0)


@pytest.fixture
def executor(network_config, connectivity, activity, clock) -> RequestExecutor:
    return RequestExecutor(
        config=network_config, connectivity=connectivity, activity=activity, sleep=clock.sleep
    )


@pytest.fixture
def mock_api() -> MockAPI:
    return MockAPI()


@pytest.fixture
def client(session_store, cache, executor, mock_api) -> AISubtitlesClient:
    """Client with an API key but no token, talking to ``mock_api``."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(mock_api))
    return AISubtitlesClient(
        session_store,
        cache,
        executor=executor,
        api_key=TEST_API_KEY,
        base_url=BASE_URL,
        http=http,
    )


@pytest.fixture
def authed_client(client) -> AISubtitlesClient:
    client.token = "test-token"
    return client


@pytest.fixture
def api_session(client, session_store, cache, clock) -> APISession:
    return APISession(client, session_store, cache, sleep=clock.sleep)
