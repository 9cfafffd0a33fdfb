"""
auth/tokens.py -- JWT encode/decode and session cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       only the user id (sub), a random session id (sid), iat and exp.
       Verification returns None on any failure -- the session serializer
       turns that into SessionInvalid.

  Cookie: httpOnly, samesite=lax, secure per SECURE_COOKIES, max_age equal
       to the JWT lifetime so both expire together.

Only auth/sessions.py should call encode/decode; everything else treats the
token as an opaque SessionPayload.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

_settings = get_settings()

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def new_session_id() -> str:
    """Return a fresh 128-bit session id (32 hex chars)."""
    return secrets.token_hex(16)


def encode_session_token(user_id: int, sid: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for one session of one user.

    Args:
        user_id:        Numeric user ID stored in the DB.
        sid:            Session id; logout revokes by this value.
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "sid": sid,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(claims, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the claims dict or None on any failure.

    Expired, forged and malformed tokens all come back as None, as do tokens
    missing the sub or sid claim.
    """
    try:
        claims = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not claims.get("sub") or not claims.get("sid"):
        return None
    return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session payload as an httpOnly cookie on the response."""
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        _settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
