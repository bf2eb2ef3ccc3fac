"""
web/routes.py -- Forward-auth and login routes for the Gatehouse gateway.

The reverse proxy calls GET /verify for every protected request. A 200 lets
the request through; anything else is a 302 to the login page, which the
proxy relays to the browser. The route handlers only translate issuer and
verifier outcomes into HTTP -- no credential or token logic lives here.

Routes:
  GET  /         -- liveness probe
  GET  /login    -- login form
  POST /login    -- check credentials, set session cookie, redirect back
  GET  /verify   -- forward-auth check
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote, quote_plus

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from api.limiter import LOGIN_RATE_LIMIT, limiter
from auth.dependencies import get_issuer, get_session, get_settings_state
from auth.exceptions import InvalidCredentials
from auth.issuer import SessionIssuer
from auth.models import VerifyResult
from auth.tokens import set_session_cookie
from core.config import Settings

logger = logging.getLogger("gatehouse.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Header the reverse proxy uses to pass the originally requested URI.
FORWARDED_URI_HEADER = "X-Forwarded-Uri"
AUTHENTICATED_USER_HEADER = "X-Authenticated-User"

_LOGIN_FAILED = "Invalid username or password."

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_redirect(target: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Prevents open redirect attacks where an attacker crafts a URL like:
      /login?redirect_uri=https://attacker.com  or  ?redirect_uri=//attacker.com

    Both would redirect off-site after login. We only allow paths that:
    - Start with "/" (relative, server-local)
    - Do NOT start with "//" (protocol-relative URL, redirects off-site)
    """
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/"


def _login_page(request: Request, redirect_uri: str, error_msg: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "login.html",
        {"redirect_uri": redirect_uri, "error_msg": error_msg},
        status_code=status_code,
    )


def redirect_to_login(original_uri: str) -> RedirectResponse:
    """302 to the login form, carrying the URI the caller originally asked for."""
    location = "/login?redirect_uri=" + quote_plus(original_uri)
    logger.info("Redirecting unauthenticated request to %s (original URI: %s)", location, original_uri)
    return RedirectResponse(location, status_code=302)


# ---------------------------------------------------------------------------
# Liveness
# ---------------------------------------------------------------------------


@router.get("/", response_class=PlainTextResponse)
def alive() -> PlainTextResponse:
    return PlainTextResponse("Hello world")


# ---------------------------------------------------------------------------
# Forward-auth check
# ---------------------------------------------------------------------------


@router.get("/verify")
def verify(request: Request, session: VerifyResult = Depends(get_session)) -> Response:
    """Allow or deny the proxied request based on its session cookie.

    The reason for a denial is logged by the verifier and never reaches the
    client: every denial looks the same from outside.
    """
    original_uri = request.headers.get(FORWARDED_URI_HEADER) or "/"
    if not session.authenticated:
        return redirect_to_login(original_uri)

    resp = PlainTextResponse("Authenticated")
    # Header values are latin-1 on the wire; percent-encode the subject so any
    # configured username survives.
    resp.headers[AUTHENTICATED_USER_HEADER] = quote(session.subject, safe="")
    return resp


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request, redirect_uri: str = "/") -> HTMLResponse:
    """Render the login form. redirect_uri is carried through a hidden field."""
    return _login_page(request, _safe_redirect(redirect_uri))


@router.post("/login", response_class=HTMLResponse)
@limiter.limit(LOGIN_RATE_LIMIT)  # BELOW @router so the registered endpoint enforces the limit itself
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    redirect_uri: str = Form(""),
    issuer: SessionIssuer = Depends(get_issuer),
    settings: Settings = Depends(get_settings_state),
) -> Response:
    """Handle the login form submission.

    On success the session cookie is set and the browser goes back to
    redirect_uri. On failure the form is re-rendered with one generic message
    that does not say which half of the credential pair was wrong.
    """
    target = _safe_redirect(redirect_uri or request.query_params.get("redirect_uri"))
    try:
        session = issuer.issue(username, password)
    except InvalidCredentials:
        return _login_page(request, target, error_msg=_LOGIN_FAILED, status_code=401)

    resp = RedirectResponse(target, status_code=302)
    set_session_cookie(resp, settings.cookie_name, session.token, session.expires_at, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp
