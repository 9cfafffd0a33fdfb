"""
auth/guard.py -- Access Guard: session gate in front of protected operations.

authorize() turns a session payload (or its absence) into an AuthContext.
It never raises for credential or session problems -- an invalid payload is
simply an anonymous context, and the route decides whether to redirect to
/login. StoreUnavailable does propagate: "cannot tell" is not "anonymous",
and the app turns it into a retryable 503.

logout() revokes the payload's session id. A store failure during
revocation is reported back as LogoutPartialFailure inside the result, not
raised, so the route can still clear the cookie.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.errors import LogoutPartialFailure, SessionInvalid, StoreUnavailable
from auth.models import AuthContext, SessionPayload
from auth.sessions import SessionSerializer

logger = logging.getLogger("secretgate.auth")


@dataclass(frozen=True)
class LogoutResult:
    revoked: bool = False
    error: LogoutPartialFailure | None = None

    @property
    def partial_failure(self) -> bool:
        return self.error is not None


class AccessGuard:
    def __init__(self, serializer: SessionSerializer) -> None:
        self.serializer = serializer

    def authorize(self, payload: SessionPayload | None) -> AuthContext:
        if not payload:
            return AuthContext.anonymous()
        try:
            user = self.serializer.deserialize(payload)
        except SessionInvalid as exc:
            logger.debug("Session rejected: %s", exc)
            return AuthContext.anonymous()
        return AuthContext(user=user, payload=payload)

    def logout(self, payload: SessionPayload | None) -> LogoutResult:
        if not payload:
            return LogoutResult()
        try:
            revoked = self.serializer.revoke(payload)
        except StoreUnavailable as exc:
            logger.warning("Logout could not revoke session server-side: %s", exc)
            return LogoutResult(error=LogoutPartialFailure(str(exc)))
        return LogoutResult(revoked=revoked)
