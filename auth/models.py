"""
auth/models.py -- Domain dataclasses for session tokens and verification outcomes.

Pattern: Data class (pure data container, near-zero logic). The codec, issuer
and verifier do the work; these types only carry shape between them.

SessionClaims is validated once, at the codec boundary (from_payload). Every
caller after that reads typed attributes -- no dict lookups, no isinstance
checks on the hot path.

Layer rule: no imports from api/, web/, core/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from auth.exceptions import MalformedToken

# Payload keys on the wire. "user" rather than "sub" keeps tokens compatible
# with sessions issued by earlier gateway deployments.
SUBJECT_KEY = "user"
EXPIRE_KEY = "expire"
CREDENTIAL_HASH_KEY = "credential_hash"


@dataclass(frozen=True)
class SessionClaims:
    """The claim set carried inside a session token.

    expire is an absolute Unix timestamp in seconds. credential_hash is a
    bcrypt hash of the password at issuance time and is only present when the
    gateway runs in credential_hash mode.
    """

    subject: str
    expire: int
    credential_hash: str | None = None

    def to_payload(self) -> dict:
        payload: dict = {SUBJECT_KEY: self.subject, EXPIRE_KEY: self.expire}
        if self.credential_hash is not None:
            payload[CREDENTIAL_HASH_KEY] = self.credential_hash
        return payload

    @classmethod
    def from_payload(cls, payload: object) -> SessionClaims:
        """Build claims from a decoded token payload, rejecting bad shapes.

        Raises MalformedToken if the payload is not an object, the subject is
        not a non-empty string, or expire is not a number. Booleans are not
        numbers here even though Python treats them as ints.
        """
        if not isinstance(payload, dict):
            raise MalformedToken("token payload is not an object")

        subject = payload.get(SUBJECT_KEY)
        if not isinstance(subject, str) or not subject:
            raise MalformedToken("token payload has no subject")

        expire = payload.get(EXPIRE_KEY)
        if isinstance(expire, bool) or not isinstance(expire, (int, float)):
            raise MalformedToken("token payload has no numeric expire")

        credential_hash = payload.get(CREDENTIAL_HASH_KEY)
        if credential_hash is not None and not isinstance(credential_hash, str):
            raise MalformedToken("token credential_hash is not a string")

        return cls(subject=subject, expire=int(expire), credential_hash=credential_hash)


@dataclass(frozen=True)
class IssuedSession:
    """A freshly signed token and the instant it stops being valid."""

    token: str
    expires_at: datetime


class DenyReason(str, Enum):
    NO_TOKEN = "no_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED = "expired"
    CREDENTIAL_CHANGED = "credential_changed"


@dataclass(frozen=True)
class VerifyResult:
    """Terminal outcome of one verification call.

    Exactly one of subject / reason is set. Use the allow() and deny()
    constructors rather than building instances by hand.
    """

    subject: str | None = None
    reason: DenyReason | None = None

    @property
    def authenticated(self) -> bool:
        return self.subject is not None

    @classmethod
    def allow(cls, subject: str) -> VerifyResult:
        return cls(subject=subject)

    @classmethod
    def deny(cls, reason: DenyReason) -> VerifyResult:
        return cls(reason=reason)
