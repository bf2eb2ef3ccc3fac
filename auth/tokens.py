"""
auth/tokens.py -- Session token codec, password hashing, and cookie helper.

Security design decisions:
  Tokens: python-jose JWS with HS256, pinned. The header is read before any
       signature work so that a token naming a different algorithm (HS512,
       RS256, "none") is rejected outright instead of being handed to a
       verifier that might accept it. Every failure raises a TokenError
       subclass; the codec never returns claims it could not fully verify.

  Passwords: bcrypt directly (no passlib wrapper). Only used in
       credential_hash mode, where the hash of the live password is embedded in
       each token and re-checked on every verification.

  Signing key: passed in by the caller (from Settings.jwt_key). The codec
       holds no module-level configuration so tests can build one per case.

Layer rule: no imports from api/, web/, core/, or cache/.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime

import bcrypt
from jose import jws
from jose.exceptions import JOSEError
from jose.utils import base64url_decode, base64url_encode

from auth.exceptions import InvalidSignature, MalformedToken, SigningFailure, UnsupportedAlgorithm
from auth.models import SessionClaims

logger = logging.getLogger("gatehouse.auth")

ALGORITHM = "HS256"

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]*$")

# ---------------------------------------------------------------------------
# Claims codec
# ---------------------------------------------------------------------------


def _check_encoding(token: str) -> None:
    """Reject any token that is not exactly one canonical encoding.

    The JWS backend decodes base64url leniently: unused low bits in the last
    character and trailing non-alphabet characters are ignored. Without this
    check many distinct strings would verify to the same signature.
    """
    parts = token.split(".")
    if len(parts) != 3 or not all(_SEGMENT.match(part) for part in parts):
        raise MalformedToken("token is not three base64url segments")
    signature = parts[2]
    try:
        canonical = base64url_encode(base64url_decode(signature.encode("ascii"))).decode("ascii")
    except (TypeError, ValueError) as exc:
        raise MalformedToken("token signature is not valid base64url") from exc
    if canonical != signature:
        raise InvalidSignature("token signature is not canonically encoded")


class ClaimsCodec:
    """Signs SessionClaims into compact JWS strings and verifies them back.

    Usage:
        codec = ClaimsCodec(settings.jwt_key)
        token = codec.sign(SessionClaims(subject="admin", expire=1735689600))
        claims = codec.verify(token)   # raises TokenError on any failure
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def sign(self, claims: SessionClaims) -> str:
        """Return the signed token for claims.

        Signing is deterministic for a given key and claim set. Raises
        SigningFailure if the key is missing or rejected by the JWS backend --
        a configuration fault, never a per-request condition.
        """
        if not self._secret:
            raise SigningFailure("signing key is not configured")
        payload = json.dumps(claims.to_payload(), separators=(",", ":"))
        try:
            return jws.sign(payload.encode("utf-8"), self._secret, headers={"typ": "JWT"}, algorithm=ALGORITHM)
        except JOSEError as exc:
            raise SigningFailure(f"could not sign session token: {exc}") from exc

    def verify(self, token: str) -> SessionClaims:
        """Verify token and return its claims.

        Raises:
            MalformedToken:       header or payload cannot be decoded, or the
                                  payload lacks a subject / numeric expire.
            UnsupportedAlgorithm: header alg is anything other than HS256.
            InvalidSignature:     signature does not match the shared key.
        """
        _check_encoding(token)
        try:
            header = jws.get_unverified_header(token)
        except JOSEError as exc:
            raise MalformedToken(str(exc)) from exc

        alg = header.get("alg")
        if alg != ALGORITHM:
            raise UnsupportedAlgorithm(f"token algorithm {alg!r} is not allowed")

        try:
            raw = jws.verify(token, self._secret, algorithms=[ALGORITHM])
        except JOSEError as exc:
            raise InvalidSignature(str(exc)) from exc

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedToken("token payload is not valid JSON") from exc
        return SessionClaims.from_payload(payload)


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes of its input; longer passwords
    are truncated before hashing.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A hash that bcrypt cannot parse is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_session_cookie(response, cookie_name: str, token: str, expires_at: datetime, secure: bool = True) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": sent on top-level navigations, not on cross-site POST.
    secure: only sent over HTTPS. Disable with SECURE_COOKIES=false for plain
        http://localhost development.
    expires: matches the token's own expire claim so both lapse together.
    """
    response.set_cookie(
        cookie_name,
        value=token,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
        expires=expires_at,
    )
