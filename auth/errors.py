"""
auth/errors.py -- Error taxonomy for the authentication core.

Every error is request-scoped: none of these is fatal to the process.

  DuplicateUsername     register() with a username that already exists.
  InvalidCredential     password did not match (or see NotFound).
  NotFound              no local account for the username. Subclasses
                        InvalidCredential so a caller catching the latter
                        cannot tell the two apart (no username enumeration).
  SessionInvalid        payload is forged, expired, revoked, or its user is gone.
  StoreUnavailable      the backing store could not be reached. Retryable.
  LogoutPartialFailure  the session could not be revoked server-side. Reported,
                        never raised out of AccessGuard.logout().
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication-core errors."""

    code: str = "auth_error"


class DuplicateUsername(AuthError):
    code = "duplicate_username"


class InvalidCredential(AuthError):
    code = "invalid_credential"


class NotFound(InvalidCredential):
    # Callers only ever see "invalid_credential".
    code = "invalid_credential"


class SessionInvalid(AuthError):
    code = "session_invalid"


class StoreUnavailable(AuthError):
    code = "store_unavailable"


class LogoutPartialFailure(AuthError):
    code = "logout_partial_failure"
