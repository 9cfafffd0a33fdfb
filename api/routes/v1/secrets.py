"""
api/routes/v1/secrets.py -- The protected resource: one secret per user.

Routes:
  GET /api/v1/secrets     -- public list of every non-null secret
  PUT /api/v1/secrets/me  -- set the caller's own secret (requires auth)

The owning user is always taken from the authenticated session, never from
the request body, so a caller can only ever write their own record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import SecretRow, SecretSubmit
from auth.dependencies import require_user
from auth.models import User
from auth.store import UserStore

router = APIRouter()


@router.get("/secrets", response_model=list[SecretRow])
def list_secrets(request: Request) -> list[SecretRow]:
    user_store: UserStore = request.app.state.user_store
    return [SecretRow(user_id=u.id, username=u.username, secret=u.secret) for u in user_store.list_users_with_secrets()]


@router.put("/secrets/me", response_model=SecretRow)
def submit_secret(
    request: Request,
    body: SecretSubmit,
    current_user: User = Depends(require_user),
) -> SecretRow:
    """Overwrite the caller's secret. Last write wins."""
    user_store: UserStore = request.app.state.user_store
    if not user_store.set_secret(current_user.id, body.secret):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return SecretRow(user_id=current_user.id, username=current_user.username, secret=body.secret)
