"""Shared test fixtures for the edge probe service."""

import pytest
from fastapi.testclient import TestClient

from api.middleware.rate_limit import RateLimiter
from config import Settings
from main import create_app

TEST_TOKEN = "test-token"


# ---------------------------------------------------------------------------
# Fakes for injected collaborators
# ---------------------------------------------------------------------------

class FakeClock:
    """Controllable wall clock (seconds since epoch)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """In-memory RateLimitStore; TTLs are recorded, not enforced."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False
        self.calls: list[tuple] = []

    async def get(self, key: str) -> int:
        self.calls.append(("get", key))
        if self.fail:
            raise ConnectionError("store unreachable")
        return self.counts.get(key, 0)

    async def incr(self, key: str, ttl: int) -> int:
        self.calls.append(("incr", key, ttl))
        if self.fail:
            raise ConnectionError("store unreachable")
        self.counts[key] = self.counts.get(key, 0) + 1
        self.ttls.setdefault(key, ttl)
        return self.counts[key]


class CountingRandomSource:
    """RandomSource that records the size of every fill call."""

    max_chunk = 65536

    def __init__(self):
        self.calls: list[int] = []

    def fill(self, view: memoryview) -> None:
        if len(view) > self.max_chunk:
            raise ValueError("quota exceeded")
        self.calls.append(len(view))
        view[:] = bytes([7]) * len(view)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return Settings(
        api_probe_token=TEST_TOKEN,
        version="test-version",
        git_commit="test-commit",
        build_time="2024-06-19",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def random_source():
    return CountingRandomSource()


@pytest.fixture
def make_client(settings, store, clock, random_source):
    """Factory: build a TestClient around an app with fake collaborators."""
    clients = []

    def _make(app_settings=None, **kwargs):
        app_settings = app_settings or settings
        limiter = RateLimiter(
            store,
            limit=app_settings.rate_limit,
            window=app_settings.rate_limit_window,
            deferred_write=app_settings.rate_limit_deferred_write,
            clock=clock,
        )
        kwargs.setdefault("random_source", random_source)
        app = create_app(app_settings, limiter=limiter, **kwargs)
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def auth():
    return {"x-api-probe-token": TEST_TOKEN, "cf-connecting-ip": "203.0.113.7"}
