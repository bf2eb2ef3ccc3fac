"""
tests/conftest.py -- Shared fixtures for Gatehouse unit and integration tests.

This module provides:
  - make_settings(): a complete Settings object that ignores any .env file
  - FakeClock: a controllable clock for the issuer, verifier and cache
  - gateway: TestClient over a fresh app with its own verification cache

Design: every app test builds its own app via create_app(settings, cache=...)
so no verification cache or limiter state leaks between tests. The
TestClient is always entered as a context manager so the lifespan runs and
app.state.issuer / app.state.verifier exist.

follow_redirects=False is essential: the gateway's answer to an
unauthenticated request IS the redirect, and its Location header is what the
reverse proxy relays to the browser.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import create_app
from auth.tokens import ClaimsCodec
from cache.store import VerificationCache
from core.config import Settings

TEST_JWT_KEY = "test-signing-key-0123456789abcdef-0123456789abcdef"
TEST_COOKIE = "gatehouse_session"
TEST_USERNAME = "admin"
TEST_PASSWORD = "correct horse battery staple"


def make_settings(**overrides) -> Settings:
    """Return Settings for tests. .env files are never read."""
    values = {
        "jwt_key": TEST_JWT_KEY,
        "port": 8080,
        "cookie_name": TEST_COOKIE,
        "username": TEST_USERNAME,
        "password": TEST_PASSWORD,
        "expire_in": 7,
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeClock:
    """Callable clock returning a fixed instant until advanced."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def cookie_header(token: str, name: str = TEST_COOKIE) -> dict[str, str]:
    """Request headers carrying the session cookie.

    Set explicitly rather than through the client cookie jar: the gateway's
    cookie is Secure and the test server speaks plain http.
    """
    return {"Cookie": f"{name}={token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Clear the shared in-memory limiter so login counts never carry over."""
    limiter.reset()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(settings: Settings) -> ClaimsCodec:
    return ClaimsCodec(settings.jwt_key)


@pytest.fixture
def cache(clock: FakeClock) -> VerificationCache:
    return VerificationCache(ttl=300, max_cost=1000, shards=4, timer=clock)


@pytest.fixture
def gateway(settings: Settings) -> Generator[tuple[TestClient, VerificationCache], None, None]:
    """Yield (client, cache) for an app using wall-clock time.

    The cache is injected so tests can inspect it directly.
    """
    cache = VerificationCache(ttl=settings.cache_ttl_seconds, max_cost=1000, shards=4)
    app = create_app(settings, cache=cache)
    with TestClient(app, follow_redirects=False) as client:
        yield client, cache
