"""
auth/broker.py -- Authentication Broker: one login attempt, either strategy.

A login attempt is a small state machine:

    ANONYMOUS -> AWAITING_STRATEGY -> LOCAL_PENDING     -> AUTHENTICATED
                                   -> FEDERATED_PENDING -> REJECTED

The strategy is chosen by the type of the Credential value (LocalCredential
or FederatedCredential), not by which route was hit. AUTHENTICATED and
REJECTED are terminal. A rejected attempt leaves no session behind; the
caller simply starts a new attempt (no lockout counter).

Credential and store errors never escape authenticate()/register(): they are
converted into a REJECTED outcome with a reason code the route layer maps to
a redirect or an HTTP status.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from auth.credentials import CredentialVerifier
from auth.errors import DuplicateUsername, InvalidCredential, StoreUnavailable
from auth.models import Credential, FederatedCredential, LocalCredential, SessionPayload, User
from auth.resolver import IdentityResolver
from auth.sessions import SessionSerializer
from auth.store import UserStore

logger = logging.getLogger("secretgate.auth")


class AttemptState(str, Enum):
    ANONYMOUS = "anonymous"
    AWAITING_STRATEGY = "awaiting_strategy"
    LOCAL_PENDING = "local_pending"
    FEDERATED_PENDING = "federated_pending"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


_TRANSITIONS: dict[AttemptState, set[AttemptState]] = {
    AttemptState.ANONYMOUS: {AttemptState.AWAITING_STRATEGY},
    AttemptState.AWAITING_STRATEGY: {
        AttemptState.LOCAL_PENDING,
        AttemptState.FEDERATED_PENDING,
        AttemptState.REJECTED,
    },
    AttemptState.LOCAL_PENDING: {AttemptState.AUTHENTICATED, AttemptState.REJECTED},
    AttemptState.FEDERATED_PENDING: {AttemptState.AUTHENTICATED, AttemptState.REJECTED},
    AttemptState.AUTHENTICATED: set(),
    AttemptState.REJECTED: set(),
}

# Rejection reasons surfaced to the route layer.
REASON_INVALID_CREDENTIAL = "invalid_credential"
REASON_DUPLICATE_USERNAME = "duplicate_username"
REASON_STORE_UNAVAILABLE = "store_unavailable"
REASON_INVALID_INPUT = "invalid_input"


@dataclass
class LoginAttempt:
    state: AttemptState = AttemptState.ANONYMOUS
    trail: list[AttemptState] = field(default_factory=lambda: [AttemptState.ANONYMOUS])

    def advance(self, new_state: AttemptState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal login transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.trail.append(new_state)


@dataclass
class AuthOutcome:
    """Result of one login attempt.

    On AUTHENTICATED, user and payload are set; the caller writes the payload
    to the session cookie. On REJECTED, reason holds a code and both are None.
    """

    state: AttemptState
    trail: list[AttemptState]
    user: User | None = None
    payload: SessionPayload | None = None
    reason: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.state is AttemptState.AUTHENTICATED

    @property
    def retryable(self) -> bool:
        return self.reason == REASON_STORE_UNAVAILABLE


class AuthBroker:
    def __init__(
        self,
        store: UserStore,
        verifier: CredentialVerifier,
        resolver: IdentityResolver,
        serializer: SessionSerializer,
    ) -> None:
        self.store = store
        self.verifier = verifier
        self.resolver = resolver
        self.serializer = serializer

    @classmethod
    def from_store(cls, store: UserStore, provider: str = "google") -> "AuthBroker":
        return cls(
            store=store,
            verifier=CredentialVerifier(store),
            resolver=IdentityResolver(store, provider=provider),
            serializer=SessionSerializer(store),
        )

    def authenticate(self, credential: Credential) -> AuthOutcome:
        """Run one login attempt to completion and return its outcome."""
        attempt = LoginAttempt()
        attempt.advance(AttemptState.AWAITING_STRATEGY)

        match credential:
            case LocalCredential(username=username, password=password):
                attempt.advance(AttemptState.LOCAL_PENDING)
                try:
                    user = self.verifier.verify(username, password)
                except InvalidCredential:
                    logger.info("Local login rejected")
                    return self._reject(attempt, REASON_INVALID_CREDENTIAL)
                except StoreUnavailable:
                    logger.warning("Local login failed: user store unavailable")
                    return self._reject(attempt, REASON_STORE_UNAVAILABLE)
            case FederatedCredential(provider_id=provider_id, display_name=display_name):
                attempt.advance(AttemptState.FEDERATED_PENDING)
                try:
                    user = self.resolver.resolve(provider_id, display_name)
                except StoreUnavailable:
                    logger.warning("Federated login failed: user store unavailable")
                    return self._reject(attempt, REASON_STORE_UNAVAILABLE)
            case _:
                raise TypeError(f"unsupported credential type: {type(credential).__name__}")

        return self._establish(attempt, user)

    def register(self, username: str, password: str) -> AuthOutcome:
        """Create a local account and log it in, in one attempt."""
        attempt = LoginAttempt()
        attempt.advance(AttemptState.AWAITING_STRATEGY)
        try:
            self.verifier.register(username, password)
        except DuplicateUsername:
            logger.info("Registration rejected: username taken")
            return self._reject(attempt, REASON_DUPLICATE_USERNAME)
        except ValueError:
            return self._reject(attempt, REASON_INVALID_INPUT)
        except StoreUnavailable:
            logger.warning("Registration failed: user store unavailable")
            return self._reject(attempt, REASON_STORE_UNAVAILABLE)
        return self.authenticate(LocalCredential(username=username, password=password))

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _establish(self, attempt: LoginAttempt, user: User) -> AuthOutcome:
        try:
            self.store.update_last_login(user.id)
        except StoreUnavailable:
            logger.warning("Login failed: user store unavailable while establishing session")
            return self._reject(attempt, REASON_STORE_UNAVAILABLE)
        payload = self.serializer.serialize(user)
        attempt.advance(AttemptState.AUTHENTICATED)
        logger.info("Session established for user id=%s", user.id)
        return AuthOutcome(state=attempt.state, trail=attempt.trail, user=user, payload=payload)

    @staticmethod
    def _reject(attempt: LoginAttempt, reason: str) -> AuthOutcome:
        attempt.advance(AttemptState.REJECTED)
        return AuthOutcome(state=attempt.state, trail=attempt.trail, reason=reason)
