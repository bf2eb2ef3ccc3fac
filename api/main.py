"""
api/main.py -- FastAPI application factory for the Gatehouse gateway.

Run with:  uvicorn asgi:app
           python main.py

Middleware stack (outermost to innermost):
  1. log_requests      -- one access-log line per request with latency
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the verification cache, issuer and verifier on startup and
starts a background task that purges lapsed cache entries. Shutdown cancels
the task and closes the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from auth.issuer import SessionIssuer
from auth.tokens import ClaimsCodec
from auth.verifier import build_verifier
from cache.store import VerificationCache
from core.config import Settings, get_settings
from web.routes import router as web_router

logger = logging.getLogger("gatehouse.api")

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: float) -> None:
    """Purge lapsed verification cache entries every `interval` seconds.

    get() already ignores lapsed entries; this only reclaims memory held by
    tokens nobody presents again. CancelledError from task.cancel() during
    shutdown propagates out of asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.cache.purge_expired()
        if removed:
            logger.debug("Purged %d lapsed cache entries", removed)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[VerificationCache] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the gateway app.

    settings defaults to the environment (get_settings()), which raises if a
    required variable is missing -- the process never starts half-configured.
    cache and clock are injection points for tests; in production the
    lifespan builds the cache from settings and the clock is wall time.
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Own the verification cache for the full server lifetime."""
        logger.info("Gatehouse starting up (session_mode=%s)", settings.session_mode)
        if cache is not None:
            app.state.cache = cache
        else:
            app.state.cache = VerificationCache(
                ttl=settings.cache_ttl_seconds,
                max_cost=settings.cache_max_entries,
                shards=settings.cache_shards,
            )
        app.state.issuer = SessionIssuer(settings, ClaimsCodec(settings.jwt_key), clock=clock)
        app.state.verifier = build_verifier(settings, app.state.cache, clock=clock)
        app.state.purge_task = asyncio.create_task(_purge_loop(app, app.state.cache.ttl))

        yield

        app.state.purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.purge_task
        app.state.cache.close()
        logger.info("Gatehouse shutdown complete")

    app = FastAPI(
        title="Gatehouse",
        description="Forward-authentication gateway for reverse proxies.",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    # SlowAPI looks for app.state.limiter by convention.
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(web_router)
    return app


# ---------------------------------------------------------------------------
# Exception handlers
#
# Plain text bodies: the only client that reads them is a browser that was
# bounced through the proxy, and none of them may reveal internals.
# ---------------------------------------------------------------------------


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> PlainTextResponse:
    """Return 429 when the login rate limit is exceeded.

    Sync on purpose: SlowAPIMiddleware calls this handler directly (without
    awaiting) when it rejects a request to a sync endpoint.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    logger.warning("Rate limit exceeded on %s %s", request.method, request.url.path)
    response = PlainTextResponse("Too many requests.", status_code=429)
    response.headers["Retry-After"] = str(retry_after)
    return response


async def generic_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Catch-all handler for unexpected server errors, SigningFailure included.

    The traceback goes to the server log only; the client gets a generic body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return PlainTextResponse("Internal server error.", status_code=500)
