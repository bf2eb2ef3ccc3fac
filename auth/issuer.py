"""
auth/issuer.py -- Exchange the static credential pair for a signed session token.

The gateway trusts exactly one username/password pair from configuration.
Both halves are compared with hmac.compare_digest and both comparisons always
run, so a wrong username and a wrong password take the same path and raise
the same InvalidCredentials error.

In credential_hash mode the issued token also carries a bcrypt hash of the
password. The verifier re-checks it against the live PASSWORD, which makes a
password rotation invalidate every outstanding session without a session
table.

Layer rule: no imports from api/, web/, or cache/. Settings are passed in.
"""

from __future__ import annotations

import hmac
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from auth.exceptions import InvalidCredentials
from auth.models import IssuedSession, SessionClaims
from auth.tokens import ClaimsCodec, hash_password

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("gatehouse.auth")


def _matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class SessionIssuer:
    def __init__(
        self,
        settings: Settings,
        codec: ClaimsCodec,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._codec = codec
        self._clock = clock

    def issue(self, username: str, password: str) -> IssuedSession:
        """Check credentials and return a signed session token.

        Raises InvalidCredentials on any mismatch and SigningFailure if the
        signing key is unusable.
        """
        username_ok = _matches(username, self._settings.username)
        password_ok = _matches(password, self._settings.password)
        if not (username_ok and password_ok):
            logger.info("Login rejected for username %r", username)
            raise InvalidCredentials()

        expire = int(self._clock()) + self._settings.token_lifetime_seconds
        credential_hash = None
        if self._settings.session_mode == "credential_hash":
            credential_hash = hash_password(password, rounds=self._settings.bcrypt_rounds)

        claims = SessionClaims(subject=username, expire=expire, credential_hash=credential_hash)
        token = self._codec.sign(claims)
        logger.info("Issued session for %r (expires %d)", username, expire)
        return IssuedSession(token=token, expires_at=datetime.fromtimestamp(expire, tz=timezone.utc))
