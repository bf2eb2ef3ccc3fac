"""Tests for api/main.py -- lifespan wiring and the background cache purge."""

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.main import _purge_loop, create_app
from auth.models import SessionClaims
from auth.verifier import SharedSecretVerifier
from cache.store import VerificationCache

CLAIMS = SessionClaims(subject="admin", expire=1_900_000_000)


def _run_purge_loop(cache: VerificationCache, interval: float, runtime: float) -> None:
    app = SimpleNamespace(state=SimpleNamespace(cache=cache))

    async def run():
        task = asyncio.create_task(_purge_loop(app, interval))
        await asyncio.sleep(runtime)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())


def test_purge_loop_drops_lapsed_entries(clock):
    cache = VerificationCache(ttl=5, max_cost=100, shards=2, timer=clock)
    cache.put("old-token", CLAIMS)
    clock.advance(5)
    cache.put("fresh-token", CLAIMS)
    assert len(cache) == 2

    _run_purge_loop(cache, interval=0.01, runtime=0.2)

    assert len(cache) == 1
    assert cache.get("fresh-token") == CLAIMS


def test_purge_loop_waits_for_interval(clock):
    cache = VerificationCache(ttl=5, max_cost=100, shards=2, timer=clock)
    cache.put("old-token", CLAIMS)
    clock.advance(5)

    _run_purge_loop(cache, interval=60, runtime=0.05)

    assert len(cache) == 1


def test_lifespan_builds_state_and_cancels_purge_task(settings):
    app = create_app(settings)
    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        assert isinstance(app.state.verifier, SharedSecretVerifier)
        assert app.state.cache.ttl == settings.cache_ttl_seconds
        task = app.state.purge_task
        assert not task.done()
    assert task.cancelled()
