"""
cache/store.py -- In-memory, TTL-bounded cache of verified session claims.

Signature verification runs on every proxied request. Caching the verified
claims for a short window (default 5 minutes) keyed by the raw token string
lets repeated checks skip the HMAC and JSON work.

Rules the cache keeps:
  - Entries lapse no later than their TTL after insertion, independent of the
    token's own expire claim. A lapsed entry is never returned.
  - Only the verifier writes, and only after a successful verify.
  - Memory is bounded by a cost budget (1 unit per entry by default). When a
    shard goes over its share, least-recently-used entries are dropped. A
    dropped entry only costs a re-verify, so eviction is best-effort.

Concurrency: the key space is split across shards, each an OrderedDict behind
its own threading.Lock. FastAPI runs sync handlers in a thread pool; two
requests for tokens on different shards never wait on each other.

Usage:
    cache = VerificationCache(ttl=300, max_cost=100_000)
    claims = cache.get(token)          # SessionClaims or None
    cache.put(token, claims)
    cache.purge_expired()              # called periodically by the lifespan
"""

from __future__ import annotations

import threading
import time
import zlib
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from auth.models import SessionClaims

_DEFAULT_TTL = 5 * 60  # 5 minutes in seconds
_DEFAULT_MAX_COST = 100_000
_DEFAULT_SHARDS = 16


@dataclass
class _Entry:
    claims: SessionClaims
    expires_at: float
    cost: int


class _Shard:
    def __init__(self, max_cost: int) -> None:
        self.max_cost = max_cost
        self.cost = 0
        self.entries: OrderedDict[str, _Entry] = OrderedDict()
        self.lock = threading.Lock()

    def drop(self, key: str) -> None:
        entry = self.entries.pop(key)
        self.cost -= entry.cost


class VerificationCache:
    def __init__(
        self,
        ttl: float = _DEFAULT_TTL,
        max_cost: int = _DEFAULT_MAX_COST,
        shards: int = _DEFAULT_SHARDS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_cost <= 0 or shards <= 0:
            raise ValueError("max_cost and shards must be positive")
        shards = min(shards, max_cost)
        self.ttl = ttl
        self.max_cost = max_cost
        self._timer = timer
        # Spread the budget so the shard totals add up to max_cost exactly.
        base, extra = divmod(max_cost, shards)
        self._shards = [_Shard(base + (1 if i < extra else 0)) for i in range(shards)]

    def _shard_for(self, token: str) -> _Shard:
        # crc32 rather than hash(): stable across processes and PYTHONHASHSEED.
        return self._shards[zlib.crc32(token.encode("utf-8")) % len(self._shards)]

    def get(self, token: str) -> SessionClaims | None:
        """Return cached claims for token if present and not lapsed."""
        shard = self._shard_for(token)
        now = self._timer()
        with shard.lock:
            entry = shard.entries.get(token)
            if entry is None:
                return None
            if now >= entry.expires_at:
                shard.drop(token)
                return None
            shard.entries.move_to_end(token)
            return entry.claims

    def put(self, token: str, claims: SessionClaims, ttl: float | None = None, cost: int = 1) -> None:
        """Store claims for token, replacing any existing entry.

        ttl is clamped to the cache's own TTL so no caller can extend an
        entry's life past the configured window. An entry whose cost exceeds
        the shard budget is not stored at all.
        """
        ttl = self.ttl if ttl is None else min(ttl, self.ttl)
        if ttl <= 0 or cost <= 0:
            return
        shard = self._shard_for(token)
        expires_at = self._timer() + ttl
        with shard.lock:
            if token in shard.entries:
                shard.drop(token)
            if cost > shard.max_cost:
                return
            shard.entries[token] = _Entry(claims=claims, expires_at=expires_at, cost=cost)
            shard.cost += cost
            while shard.cost > shard.max_cost:
                oldest = next(iter(shard.entries))
                shard.drop(oldest)

    def purge_expired(self) -> int:
        """Delete all lapsed entries. Returns the number of entries removed."""
        now = self._timer()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                stale = [key for key, entry in shard.entries.items() if now >= entry.expires_at]
                for key in stale:
                    shard.drop(key)
                removed += len(stale)
        return removed

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()
                shard.cost = 0

    def __len__(self) -> int:
        return sum(len(shard.entries) for shard in self._shards)

    def close(self) -> None:
        self.clear()
