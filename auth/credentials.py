"""
auth/credentials.py -- Credential Verifier: local username/password accounts.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The salt comes from
       bcrypt.gensalt() with the configured cost factor and is stored next to
       the hash; the hash string embeds it too, so checkpw() needs only the
       hash. Plaintext is never stored or logged.

  Enumeration: verify() raises NotFound for an unknown username and
       InvalidCredential for a wrong password. NotFound subclasses
       InvalidCredential, so the broker and routes handle both through one
       except clause and emit one generic error. bcrypt always runs -- against
       _DUMMY_HASH when there is no real hash -- so response time does not
       reveal whether a username exists either.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateUsername, InvalidCredential, NotFound
from auth.models import User
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("secretgate.auth")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> tuple[str, str]:
    """Return (hash, salt) for a plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer
    caps password length at 72 characters so that never happens silently
    for ASCII input.
    """
    salt = bcrypt.gensalt(rounds=rounds or _settings.bcrypt_rounds)
    hashed = bcrypt.hashpw(plain.encode("utf-8"), salt)
    return hashed.decode("utf-8"), salt.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store: treat as a mismatch, never as a match.
        return False


# Computed once at import so the first unknown-username login is not
# measurably slower than later ones.
_DUMMY_HASH, _ = hash_password("secretgate_timing_dummy")


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class CredentialVerifier:
    """Registers and verifies local (username + password) accounts."""

    def __init__(self, store: UserStore) -> None:
        self.store = store

    def register(self, username: str, password: str) -> User:
        """Create a local account. Raises DuplicateUsername if the name is taken.

        The pre-check gives the common case a clean error; the IntegrityError
        catch covers two registrations racing for the same name. Either way
        no second user is created.
        """
        if not username or not password:
            raise ValueError("username and password are required")
        if self.store.get_by_username(username) is not None:
            raise DuplicateUsername(username)

        hashed, salt = hash_password(password)
        try:
            user_id = self.store.create_user(User(username=username, password_hash=hashed, password_salt=salt))
        except IntegrityError as exc:
            raise DuplicateUsername(username) from exc

        logger.info("Registered local user id=%s", user_id)
        return self.store.get_by_id(user_id)

    def verify(self, username: str, password: str) -> User:
        """Return the user if the password matches.

        Raises NotFound (a subclass of InvalidCredential) when there is no
        local account for the username, InvalidCredential on a wrong password.
        """
        user = self.store.get_by_username(username)
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            verify_password(password, _DUMMY_HASH)
            raise NotFound(username)
        if not verify_password(password, user.password_hash):
            raise InvalidCredential(username)
        return user
