"""
auth/dependencies.py -- FastAPI Depends() helpers for the gateway routes.

The issuer, verifier and settings are built once by the app lifespan and
stored on app.state. Route handlers receive them through these helpers rather
than importing module-level singletons, so each test app gets its own cache.

get_session() is the soft check: it never raises and always returns a
VerifyResult. The verify route turns a denial into a redirect.

auth/dependencies.py may import from fastapi because this module is part of
the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.issuer import SessionIssuer
from auth.models import VerifyResult
from auth.verifier import SessionVerifier
from core.config import Settings


def get_settings_state(request: Request) -> Settings:
    return request.app.state.settings


def get_issuer(request: Request) -> SessionIssuer:
    return request.app.state.issuer


def get_verifier(request: Request) -> SessionVerifier:
    return request.app.state.verifier


def get_session(request: Request) -> VerifyResult:
    """Verify the session cookie on the request, if any."""
    settings = get_settings_state(request)
    token = request.cookies.get(settings.cookie_name)
    return get_verifier(request).verify(token)
