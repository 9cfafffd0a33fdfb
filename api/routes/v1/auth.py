"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login      -- password login; sets session cookie, returns payload
  POST /api/v1/auth/register   -- create local account and log it in
  POST /api/v1/auth/logout     -- revoke session server-side, clear cookie
  GET  /api/v1/auth/me         -- current identity (requires auth)
  GET  /api/v1/auth/providers  -- enabled federated providers (public)

Handlers are plain `def`: every one touches the store, and FastAPI runs sync
handlers in its worker thread pool so the event loop is never blocked.

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  Wrong username and wrong password return the same "bad_credentials" error.
  Cache-Control: no-store on every response that carries a session payload.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import LoginRequest, LoginResponse, LogoutResponse, MeResponse, ProviderInfo
from auth.broker import (
    REASON_DUPLICATE_USERNAME,
    REASON_STORE_UNAVAILABLE,
    AuthBroker,
    AuthOutcome,
)
from auth.dependencies import get_session_payload, require_user
from auth.errors import StoreUnavailable
from auth.guard import AccessGuard
from auth.models import LocalCredential, User
from auth.oauth import get_enabled_providers
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/login:      public
# - POST /api/v1/auth/register:   public
# - POST /api/v1/auth/logout:     public -- logging out needs no valid session
# - GET  /api/v1/auth/providers:  public
# - GET  /api/v1/auth/me:         requires auth (require_user)
router = APIRouter()


def _session_response(outcome: AuthOutcome, status_code: int = 200) -> JSONResponse:
    body = LoginResponse(
        access_token=outcome.payload,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=get_settings().token_expire_seconds,
        user_id=outcome.user.id,
        username=outcome.user.username,
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    set_session_cookie(resp, outcome.payload)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _raise_if_unavailable(outcome: AuthOutcome) -> None:
    if outcome.reason == REASON_STORE_UNAVAILABLE:
        raise StoreUnavailable("user store unavailable")


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; set the session cookie."""
    broker: AuthBroker = request.app.state.broker
    outcome = broker.authenticate(LocalCredential(username=body.username, password=body.password))
    _raise_if_unavailable(outcome)
    if not outcome.authenticated:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _session_response(outcome)


@router.post("/auth/register", response_model=LoginResponse, status_code=201)
def register(request: Request, body: LoginRequest) -> JSONResponse:
    """Create a local account and return a session for it."""
    broker: AuthBroker = request.app.state.broker
    outcome = broker.register(body.username, body.password)
    _raise_if_unavailable(outcome)
    if outcome.reason == REASON_DUPLICATE_USERNAME:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        )
    if not outcome.authenticated:
        raise HTTPException(
            status_code=400,
            detail={"code": "registration_failed", "message": "Registration failed."},
        )
    return _session_response(outcome, status_code=201)


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke the session and clear the cookie.

    If the revocation cannot be written the cookie is cleared anyway and the
    response carries a warning; the call still succeeds.
    """
    guard: AccessGuard = request.app.state.guard
    result = guard.logout(get_session_payload(request))
    body = LogoutResponse(
        message="Logged out.",
        warning=result.error.code if result.partial_failure else None,
    )
    resp = JSONResponse(content=body.model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/providers", response_model=list[ProviderInfo])
async def list_providers() -> list[ProviderInfo]:
    """Return the configured federated providers (empty when none)."""
    return [ProviderInfo(**p) for p in get_enabled_providers()]


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(require_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(
        user_id=current_user.id,
        username=current_user.username,
        federated_provider=current_user.federated_provider,
        has_local_credentials=current_user.has_local_credentials,
        has_secret=current_user.secret is not None,
    )
