"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Dataclasses own
the domain shape; the store, verifier, resolver, broker and guard do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

# Opaque to everything except auth/sessions.py.
SessionPayload = str


@dataclass
class User:
    """The sole persistent entity: an account that owns one optional secret.

    password_hash / password_salt are None for federated-only accounts.
    federated_provider / federated_id are None for local-only accounts.
    username is None only when a federated display name collided with an
    existing account during find-or-create.
    """

    id: int | None = None
    username: str | None = None
    password_hash: str | None = None
    password_salt: str | None = None
    federated_provider: str | None = None  # "google"
    federated_id: str | None = None  # provider's stable subject
    secret: str | None = None
    created_at: str | None = None
    last_login: str | None = None

    @property
    def has_local_credentials(self) -> bool:
        return self.password_hash is not None

    @property
    def has_federated_identity(self) -> bool:
        return self.federated_provider is not None and self.federated_id is not None

    @property
    def has_auth_path(self) -> bool:
        return self.has_local_credentials or self.has_federated_identity


# ---------------------------------------------------------------------------
# Credentials -- tagged union consumed by AuthBroker.authenticate()
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocalCredential:
    username: str
    password: str

    def __repr__(self) -> str:
        # Keep plaintext passwords out of logs and tracebacks.
        return f"LocalCredential(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class FederatedCredential:
    """Profile pair yielded by a completed federated authorization exchange."""

    provider_id: str
    display_name: str


Credential = Union[LocalCredential, FederatedCredential]


# ---------------------------------------------------------------------------
# Per-request identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity for one request, threaded explicitly through handlers.

    user is None for anonymous requests. payload is the session payload the
    identity was resolved from, kept so logout can revoke exactly that session.
    """

    user: Optional[User] = None
    payload: Optional[SessionPayload] = None

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None
