"""Tests for auth/resolver.py -- federated find-or-create.

Covers:
- first resolve creates a user keyed on (provider, federated_id)
- repeated resolve returns the same user id
- a lost race (IntegrityError on create) re-reads and returns the winner
- two threads racing for the same new provider id leave exactly one user
- a display name that collides with a local username does not block login
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from auth.credentials import CredentialVerifier
from auth.models import User
from auth.resolver import IdentityResolver
from auth.store import UserStore


class _LostRaceStore(UserStore):
    """Store whose first federated lookup misses while another request wins the insert."""

    def __init__(self, db_url: str) -> None:
        super().__init__(db_url)
        self.winner_id: int | None = None

    def get_by_federated_id(self, provider: str, federated_id: str) -> User | None:
        if self.winner_id is None:
            self.winner_id = self.create_user(
                User(username="Bob", federated_provider=provider, federated_id=federated_id)
            )
            return None
        return super().get_by_federated_id(provider, federated_id)


class _BarrierStore(UserStore):
    """Store that holds every thread after its first lookup until all have looked.

    Forces the check-then-insert window open: every racer sees "absent" and
    goes on to insert.
    """

    def __init__(self, db_url: str, parties: int) -> None:
        super().__init__(db_url)
        self._barrier = threading.Barrier(parties, timeout=10)
        self._local = threading.local()

    def get_by_federated_id(self, provider: str, federated_id: str) -> User | None:
        user = super().get_by_federated_id(provider, federated_id)
        if not getattr(self._local, "synced", False):
            self._local.synced = True
            self._barrier.wait()
        return user


def test_first_resolve_creates_federated_user(store: UserStore) -> None:
    user = IdentityResolver(store).resolve("g-123", "Bob")
    assert user.id is not None
    assert user.federated_provider == "google"
    assert user.federated_id == "g-123"
    assert user.username == "Bob"
    assert user.password_hash is None


def test_resolve_is_idempotent(store: UserStore) -> None:
    resolver = IdentityResolver(store)
    first = resolver.resolve("g-123", "Bob")
    second = resolver.resolve("g-123", "Robert")
    assert first.id == second.id
    # Existing records are returned unchanged.
    assert second.username == "Bob"
    assert store.count_users() == 1


def test_same_subject_different_provider_is_a_different_user(store: UserStore) -> None:
    google_user = IdentityResolver(store, provider="google").resolve("42", "Dana")
    other_user = IdentityResolver(store, provider="other").resolve("42", "Dana2")
    assert google_user.id != other_user.id


def test_lost_race_returns_existing_record() -> None:
    store = _LostRaceStore("sqlite:///:memory:")
    try:
        user = IdentityResolver(store).resolve("g-123", "Bob")
        assert user.id == store.winner_id
        assert store.count_users() == 1
    finally:
        store.close()


def test_concurrent_resolves_create_one_user(tmp_path) -> None:
    store = _BarrierStore(f"sqlite:///{tmp_path / 'race.db'}", parties=2)
    resolver = IdentityResolver(store)
    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(resolver.resolve, "g-123", "Bob") for _ in range(2)]
            users = [f.result(timeout=30) for f in futures]
        assert users[0].id == users[1].id
        assert store.count_users() == 1
    finally:
        store.close()


def test_display_name_collision_creates_user_without_username(store: UserStore) -> None:
    CredentialVerifier(store).register("Bob", "pw1")
    user = IdentityResolver(store).resolve("g-777", "Bob")
    assert user.federated_id == "g-777"
    assert user.username is None
    assert store.count_users() == 2
    # The local account is untouched and the federated one stays resolvable.
    assert store.get_by_username("Bob").federated_id is None
    assert IdentityResolver(store).resolve("g-777", "Bob").id == user.id


@pytest.mark.parametrize("display_name", ["", "Bob"])
def test_resolve_never_requires_a_display_name(store: UserStore, display_name: str) -> None:
    user = IdentityResolver(store).resolve("g-1", display_name)
    assert user.federated_id == "g-1"
