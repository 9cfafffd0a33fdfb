"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two transports carry the session payload, checked in priority order:
  1. Session cookie -- set by the web UI login, registration and callback.
  2. Authorization: Bearer <payload> header -- API clients.

Both converge on the Access Guard, which yields an AuthContext.

get_auth_context() is the soft variant (anonymous context on failure).
require_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from web/. auth/dependencies.py may import from
fastapi because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.guard import AccessGuard
from auth.models import AuthContext, SessionPayload, User
from core.config import get_settings


def get_session_payload(request: Request) -> SessionPayload | None:
    """Return the raw session payload from the cookie or Bearer header, if any."""
    payload: str | None = request.cookies.get(get_settings().session_cookie_name)
    if not payload:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = auth_header[7:]
    return payload or None


def get_auth_context(request: Request) -> AuthContext:
    """Resolve the request's identity through the Access Guard.

    Returns an anonymous AuthContext for missing, invalid or revoked
    payloads. StoreUnavailable propagates to the app's 503 handler.
    """
    guard: AccessGuard = request.app.state.guard
    return guard.authorize(get_session_payload(request))


def require_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(require_user)): ...
    """
    ctx = get_auth_context(request)
    if not ctx.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return ctx.user
