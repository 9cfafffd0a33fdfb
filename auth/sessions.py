"""
auth/sessions.py -- Session Serializer: User <-> opaque session payload.

The payload is a signed JWT (auth/tokens.py). It embeds the minimum needed to
re-fetch the user -- the user id -- plus a random session id so logout can
revoke that one session before it expires. It never carries the password
hash, salt, or secret.

Deserializing always goes back to the store: a payload whose user has been
removed, or whose session id was revoked, is rejected with SessionInvalid
even though its signature is still valid.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from auth.errors import SessionInvalid, StoreUnavailable
from auth.models import SessionPayload, User
from auth.store import UserStore
from auth.tokens import decode_session_token, encode_session_token, new_session_id

logger = logging.getLogger("secretgate.auth")


class SessionSerializer:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def serialize(self, user: User) -> SessionPayload:
        if user.id is None:
            raise ValueError("cannot serialize a user that has not been persisted")
        return encode_session_token(user.id, new_session_id())

    def deserialize(self, payload: SessionPayload) -> User:
        """Return the user the payload refers to.

        Raises SessionInvalid for a forged, expired, malformed or revoked
        payload, or when the user id no longer resolves. StoreUnavailable
        propagates unchanged.
        """
        claims = decode_session_token(payload) if payload else None
        if claims is None:
            raise SessionInvalid("payload could not be verified")
        try:
            user_id = int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise SessionInvalid("malformed subject claim") from exc

        if self.store.is_session_revoked(claims["sid"]):
            raise SessionInvalid("session has been logged out")

        user = self.store.get_by_id(user_id)
        if user is None:
            raise SessionInvalid("user no longer exists")
        return user

    def revoke(self, payload: SessionPayload) -> bool:
        """Revoke the session the payload belongs to.

        Returns False when there is nothing to revoke (unverifiable or already
        expired payload). A failed revocation write propagates as
        StoreUnavailable; a failed cleanup of old rows does not, since the
        session is already revoked by then.
        """
        claims = decode_session_token(payload) if payload else None
        if claims is None:
            return False
        self.store.revoke_session(claims["sid"], int(claims["exp"]))
        try:
            purged = self.store.purge_expired_revocations()
        except StoreUnavailable as exc:
            logger.debug("Skipped purge of expired session revocations: %s", exc)
            return True
        if purged:
            logger.debug("Purged %d expired session revocations", purged)
        return True
