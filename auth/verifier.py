"""
auth/verifier.py -- Decide whether a session cookie authenticates its bearer.

Per-call flow, each step terminal on failure:
  1. No cookie                          -> deny(NO_TOKEN)
  2. Cache hit -> claims. Cache miss -> codec.verify(); any TokenError
     -> deny(INVALID_TOKEN); success -> cache.put() for the cache TTL.
  3. claims.expire <= now               -> deny(EXPIRED)
  4. Variant credential check           -> deny(CREDENTIAL_CHANGED)
  5. allow(claims.subject)

Two variants share this flow and differ only in step 4:
  SharedSecretVerifier    -- the signature is the whole proof.
  CredentialHashVerifier  -- the token's embedded bcrypt hash must still
                             match the live configured password.

build_verifier() picks one from Settings.session_mode.

An expired token stays in the cache until its entry lapses on its own; step 3
runs on every call, hit or miss, so a cached claim set can never outlive its
expire claim.

The denial reason is logged here and nowhere else. Callers turn every denial
into the same redirect.
"""

from __future__ import annotations

import functools
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from auth.exceptions import TokenError
from auth.models import DenyReason, SessionClaims, VerifyResult
from auth.tokens import ClaimsCodec, verify_password

if TYPE_CHECKING:
    from cache.store import VerificationCache
    from core.config import Settings

logger = logging.getLogger("gatehouse.auth")


class SessionVerifier(ABC):
    """Base verifier. Subclasses override check_credentials()."""

    def __init__(
        self,
        codec: ClaimsCodec,
        cache: VerificationCache,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._codec = codec
        self._cache = cache
        self._clock = clock

    def verify(self, token: str | None) -> VerifyResult:
        if not token:
            return self._deny(DenyReason.NO_TOKEN)

        claims = self._cache.get(token)
        if claims is None:
            try:
                claims = self._codec.verify(token)
            except TokenError as exc:
                logger.info("Rejected session token: %s: %s", type(exc).__name__, exc)
                return self._deny(DenyReason.INVALID_TOKEN)
            self._cache.put(token, claims)

        if claims.expire <= self._clock():
            return self._deny(DenyReason.EXPIRED, claims.subject)

        if not self.check_credentials(claims):
            return self._deny(DenyReason.CREDENTIAL_CHANGED, claims.subject)

        return VerifyResult.allow(claims.subject)

    @abstractmethod
    def check_credentials(self, claims: SessionClaims) -> bool:
        """Return False if the claims no longer match the live credentials."""

    @staticmethod
    def _deny(reason: DenyReason, subject: str | None = None) -> VerifyResult:
        if subject is None:
            logger.info("Session denied: %s", reason.value)
        else:
            logger.info("Session denied for %r: %s", subject, reason.value)
        return VerifyResult.deny(reason)


class SharedSecretVerifier(SessionVerifier):
    def check_credentials(self, claims: SessionClaims) -> bool:
        return True


class CredentialHashVerifier(SessionVerifier):
    """Checks the token's embedded password hash against the live password.

    A token without credential_hash (issued in shared_secret mode) is treated
    as a changed credential.

    The password is fixed for the life of the verifier, so the bcrypt outcome
    for a given hash never changes and is remembered per hash. Rotating
    PASSWORD means a restart, which builds a new verifier with an empty memo.
    """

    HASH_MEMO_SIZE = 1024

    def __init__(
        self,
        codec: ClaimsCodec,
        cache: VerificationCache,
        password: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(codec, cache, clock)
        self._password = password
        self._hash_matches = functools.lru_cache(maxsize=self.HASH_MEMO_SIZE)(self._check_hash)

    def check_credentials(self, claims: SessionClaims) -> bool:
        if claims.credential_hash is None:
            return False
        return self._hash_matches(claims.credential_hash)

    def _check_hash(self, credential_hash: str) -> bool:
        return verify_password(self._password, credential_hash)


def build_verifier(
    settings: Settings,
    cache: VerificationCache,
    clock: Callable[[], float] = time.time,
) -> SessionVerifier:
    codec = ClaimsCodec(settings.jwt_key)
    if settings.session_mode == "credential_hash":
        return CredentialHashVerifier(codec, cache, settings.password, clock=clock)
    return SharedSecretVerifier(codec, cache, clock=clock)
