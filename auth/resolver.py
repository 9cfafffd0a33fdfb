"""
auth/resolver.py -- Identity Resolver: federated profile -> local user.

Find-or-create keyed on (provider, federated_id). The check-then-insert is
not atomic on its own; the UNIQUE(federated_provider, federated_id)
constraint in auth/store.py makes the insert the arbiter. Whoever loses the
race gets IntegrityError, re-reads, and returns the winner's record, so at
most one user exists per provider subject.

The display name is only a best-effort username. If it collides with an
existing account the user is created without a username; the federated id
stays the real key.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore

logger = logging.getLogger("secretgate.auth")


class IdentityResolver:
    """Maps a provider profile to a local User, creating it on first sight."""

    def __init__(self, store: UserStore, provider: str = "google") -> None:
        self.store = store
        self.provider = provider

    def resolve(self, provider_id: str, display_name: str) -> User:
        """Return the user linked to provider_id, creating one if absent.

        Idempotent under concurrent identical calls. Raises only
        StoreUnavailable (from the store).
        """
        user = self.store.get_by_federated_id(self.provider, provider_id)
        if user is not None:
            return user

        candidate = User(
            username=display_name or None,
            federated_provider=self.provider,
            federated_id=provider_id,
        )
        try:
            user_id = self.store.create_user(candidate)
        except IntegrityError:
            existing = self.store.get_by_federated_id(self.provider, provider_id)
            if existing is not None:
                logger.info(
                    "Federated user for provider=%s created concurrently; using id=%s", self.provider, existing.id
                )
                return existing
            # Conflict was on the username, not the federated identity.
            logger.info("Display name already taken; creating provider=%s user without username", self.provider)
            candidate.username = None
            return self._create_or_reread(candidate)

        logger.info("Created federated user id=%s provider=%s", user_id, self.provider)
        return self.store.get_by_id(user_id)

    def _create_or_reread(self, candidate: User) -> User:
        try:
            user_id = self.store.create_user(candidate)
        except IntegrityError:
            existing = self.store.get_by_federated_id(candidate.federated_provider, candidate.federated_id)
            if existing is None:
                raise
            return existing
        logger.info("Created federated user id=%s provider=%s", user_id, candidate.federated_provider)
        return self.store.get_by_id(user_id)
