"""
web/routes.py -- Browser routes for SecretGate.

These routes serve the form-based flow. They share app.state with the API
routes (same store, broker and guard) but answer with redirects and minimal
HTML instead of JSON. Rendering is kept deliberately thin; every decision is
made by the broker (who is logging in) or the guard (who is logged in).

Routes:
  GET  /                           -- home
  GET  /login                      -- login form
  POST /login                      -- password login, redirect /secrets
  GET  /register                   -- registration form
  POST /register                   -- create local account, redirect /secrets
  GET  /auth/federated             -- redirect to the federated provider
  GET  /auth/federated/callback    -- provider callback, redirect /secrets
  GET  /logout                     -- revoke session, clear cookie, redirect /
  GET  /secrets                    -- public list of submitted secrets
  GET  /submit                     -- secret form (auth required)
  POST /submit                     -- set own secret (auth required)

Store-touching handlers are plain `def` (run in the worker thread pool). The
callback is `async` because Authlib's exchange is; it hands store work to
run_in_threadpool.
"""

import logging
from pathlib import Path
from typing import Optional

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from api.limiter import LOGIN_RATE_LIMIT, limiter
from auth.broker import (
    REASON_DUPLICATE_USERNAME,
    REASON_STORE_UNAVAILABLE,
    AuthBroker,
    AuthOutcome,
)
from auth.dependencies import get_auth_context, get_session_payload
from auth.errors import StoreUnavailable
from auth.guard import AccessGuard
from auth.models import AuthContext, LocalCredential
from auth.oauth import FEDERATED_PROVIDER, get_enabled_providers, get_federated_profile
from auth.store import UserStore
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings

logger = logging.getLogger("secretgate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params. The raw query param is NEVER
# passed to templates -- only the message from this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid username or password.",
    "duplicate_username": "That username is already taken.",
    "invalid_input": "Username and password are required.",
    "federated_failed": "Sign-in with the external provider failed. Please try again.",
    "empty_secret": "Please enter a secret.",
}

_AFTER_LOGIN = "/secrets"


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative "//host" targets, which would
    redirect off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return _AFTER_LOGIN


def _require_auth(request: Request) -> tuple[AuthContext, Optional[RedirectResponse]]:
    """Resolve the caller's identity for a guarded route.

    Returns (ctx, None) when authenticated, or (anonymous ctx, redirect to
    /login) when not. Call at the top of protected route handlers:
        ctx, redirect = _require_auth(request)
        if redirect:
            return redirect
    """
    ctx = get_auth_context(request)
    if not ctx.is_authenticated:
        return ctx, RedirectResponse(f"/login?next={request.url.path}", status_code=302)
    return ctx, None


def _login_redirect(outcome: AuthOutcome, target: str) -> RedirectResponse:
    resp = RedirectResponse(target, status_code=302)
    set_session_cookie(resp, outcome.payload)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _render(
    request: Request,
    name: str,
    context: Optional[dict] = None,
    status_code: int = 200,
    ctx: Optional[AuthContext] = None,
) -> HTMLResponse:
    ctx = ctx or get_auth_context(request)
    return templates.TemplateResponse(
        request,
        name,
        {"current_user": ctx.user, **(context or {})},
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# Home
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return _render(request, "home.html")


# ---------------------------------------------------------------------------
# Local strategy
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page with username/password form and provider button."""
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    next_url = request.query_params.get("next")
    return _render(
        request,
        "login.html",
        {
            "error_msg": error_msg,
            "providers": get_enabled_providers(),
            "next_url": next_url if next_url and _safe_next(next_url) == next_url else None,
        },
    )


@limiter.limit(LOGIN_RATE_LIMIT)
@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
) -> RedirectResponse:
    """Handle username/password login form submission.

    Credentials are verified before any session exists; a rejected attempt
    leaves the caller exactly as anonymous as before. Missing fields are a
    failed login, not a validation error.
    """
    username = (username or "").strip()
    if not username or not password:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)
    broker: AuthBroker = request.app.state.broker
    outcome = broker.authenticate(LocalCredential(username=username, password=password))
    if outcome.reason == REASON_STORE_UNAVAILABLE:
        raise StoreUnavailable("user store unavailable")
    if not outcome.authenticated:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)
    return _login_redirect(outcome, _safe_next(request.query_params.get("next")))


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return _render(request, "register.html", {"error_msg": error_msg})


@router.post("/register", response_class=HTMLResponse)
def register_post(
    request: Request,
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
) -> RedirectResponse:
    """Create a local account and log it in."""
    broker: AuthBroker = request.app.state.broker
    outcome = broker.register((username or "").strip(), password or "")
    if outcome.reason == REASON_STORE_UNAVAILABLE:
        raise StoreUnavailable("user store unavailable")
    if outcome.reason == REASON_DUPLICATE_USERNAME:
        return RedirectResponse("/register?error=duplicate_username", status_code=302)
    if not outcome.authenticated:
        return RedirectResponse("/register?error=invalid_input", status_code=302)
    return _login_redirect(outcome, _AFTER_LOGIN)


# ---------------------------------------------------------------------------
# Federated strategy
# ---------------------------------------------------------------------------


@router.get("/auth/federated")
async def federated_redirect(request: Request) -> RedirectResponse:
    """Redirect the browser to the provider's authorization page."""
    if not get_settings().federated_enabled:
        return RedirectResponse("/login?error=federated_failed", status_code=302)

    client = request.app.state.oauth.create_client(FEDERATED_PROVIDER)
    redirect_uri = get_settings().federated_callback_url or str(request.url_for("federated_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/federated/callback", name="federated_callback")
async def federated_callback(request: Request) -> RedirectResponse:
    """Complete the provider exchange and hand the profile to the broker.

    Flow:
      1. Exchange the authorization code for a token (Authlib checks state).
      2. Extract (provider_id, display_name) from the userinfo claims.
      3. Broker resolves (find-or-create) and establishes the session.
    A denied consent, a failed exchange and a token without a subject all
    land on /login?error=federated_failed.
    """
    if not get_settings().federated_enabled:
        return RedirectResponse("/login?error=federated_failed", status_code=302)

    client = request.app.state.oauth.create_client(FEDERATED_PROVIDER)
    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.warning("Federated token exchange failed for provider %r", FEDERATED_PROVIDER)
        return RedirectResponse("/login?error=federated_failed", status_code=302)

    try:
        credential = get_federated_profile(token)
    except ValueError:
        logger.warning("Federated login rejected: unusable profile from %r", FEDERATED_PROVIDER)
        return RedirectResponse("/login?error=federated_failed", status_code=302)

    broker: AuthBroker = request.app.state.broker
    outcome = await run_in_threadpool(broker.authenticate, credential)
    if outcome.reason == REASON_STORE_UNAVAILABLE:
        raise StoreUnavailable("user store unavailable")
    if not outcome.authenticated:
        return RedirectResponse("/login?error=federated_failed", status_code=302)
    return _login_redirect(outcome, _AFTER_LOGIN)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@router.get("/logout")
def logout(request: Request) -> RedirectResponse:
    """Revoke the session, clear the cookie, redirect home.

    The cookie is cleared even when the server-side revocation fails; the
    failure is reported in the X-Logout-Warning header.
    """
    guard: AccessGuard = request.app.state.guard
    result = guard.logout(get_session_payload(request))
    resp = RedirectResponse("/", status_code=302)
    clear_session_cookie(resp)
    if result.partial_failure:
        resp.headers["X-Logout-Warning"] = result.error.code
    return resp


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------


@router.get("/secrets", response_class=HTMLResponse)
def secrets_page(request: Request) -> HTMLResponse:
    """Public list of every submitted secret. 404 when nobody has one yet."""
    user_store: UserStore = request.app.state.user_store
    users_with_secrets = user_store.list_users_with_secrets()
    return _render(
        request,
        "secrets.html",
        {"users_with_secrets": users_with_secrets},
        status_code=200 if users_with_secrets else 404,
    )


@router.get("/submit", response_class=HTMLResponse)
def submit_form(request: Request) -> HTMLResponse:
    ctx, redirect = _require_auth(request)
    if redirect:
        return redirect
    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""))
    return _render(request, "submit.html", {"error_msg": error_msg}, ctx=ctx)


@router.post("/submit")
def submit_post(request: Request, secret: Optional[str] = Form(None)):
    """Set the caller's own secret. Unauthenticated callers touch nothing.

    The guard runs before the form is looked at, so an anonymous caller is
    redirected to /login whatever the body holds.
    """
    ctx, redirect = _require_auth(request)
    if redirect:
        return redirect
    if not secret or not secret.strip():
        return RedirectResponse("/submit?error=empty_secret", status_code=302)

    user_store: UserStore = request.app.state.user_store
    if not user_store.set_secret(ctx.user.id, secret):
        logger.warning("Secret submit for missing user id=%s", ctx.user.id)
        return PlainTextResponse("User not found!", status_code=404)
    return RedirectResponse("/secrets", status_code=302)
