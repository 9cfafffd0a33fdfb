"""Tests for auth/broker.py -- strategy dispatch and the login state machine.

Covers:
- local success walks ANONYMOUS -> AWAITING_STRATEGY -> LOCAL_PENDING -> AUTHENTICATED
- federated success walks ... -> FEDERATED_PENDING -> AUTHENTICATED
- wrong password and unknown user both reject as invalid_credential, no payload
- store outages reject as store_unavailable (retryable)
- register() logs the new account in; duplicates reject
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from auth.broker import (
    REASON_DUPLICATE_USERNAME,
    REASON_INVALID_CREDENTIAL,
    REASON_INVALID_INPUT,
    REASON_STORE_UNAVAILABLE,
    AttemptState,
    AuthBroker,
    LoginAttempt,
)
from auth.errors import StoreUnavailable
from auth.models import FederatedCredential, LocalCredential
from auth.store import UserStore

S = AttemptState


class TestLocalStrategy:
    def test_success(self, broker: AuthBroker, store: UserStore) -> None:
        broker.verifier.register("alice", "pw1")
        outcome = broker.authenticate(LocalCredential("alice", "pw1"))
        assert outcome.authenticated
        assert outcome.trail == [S.ANONYMOUS, S.AWAITING_STRATEGY, S.LOCAL_PENDING, S.AUTHENTICATED]
        assert outcome.user.username == "alice"
        assert broker.serializer.deserialize(outcome.payload).id == outcome.user.id
        assert store.get_by_id(outcome.user.id).last_login

    @pytest.mark.parametrize("username,password", [("alice", "wrong"), ("nobody", "pw1")])
    def test_rejection_is_uniform(self, broker: AuthBroker, username: str, password: str) -> None:
        broker.verifier.register("alice", "pw1")
        outcome = broker.authenticate(LocalCredential(username, password))
        assert outcome.state is S.REJECTED
        assert outcome.trail[-2:] == [S.LOCAL_PENDING, S.REJECTED]
        assert outcome.reason == REASON_INVALID_CREDENTIAL
        assert outcome.payload is None and outcome.user is None
        assert not outcome.retryable

    def test_rejection_is_reentrant(self, broker: AuthBroker) -> None:
        broker.verifier.register("alice", "pw1")
        for _ in range(3):
            assert not broker.authenticate(LocalCredential("alice", "wrong")).authenticated
        assert broker.authenticate(LocalCredential("alice", "pw1")).authenticated

    def test_store_unavailable(self, broker: AuthBroker) -> None:
        broker.verifier = MagicMock()
        broker.verifier.verify.side_effect = StoreUnavailable("down")
        outcome = broker.authenticate(LocalCredential("alice", "pw1"))
        assert outcome.reason == REASON_STORE_UNAVAILABLE
        assert outcome.retryable

    def test_password_not_in_repr(self) -> None:
        assert "pw1" not in repr(LocalCredential("alice", "pw1"))


class TestFederatedStrategy:
    def test_success(self, broker: AuthBroker) -> None:
        outcome = broker.authenticate(FederatedCredential("g-123", "Bob"))
        assert outcome.authenticated
        assert outcome.trail == [S.ANONYMOUS, S.AWAITING_STRATEGY, S.FEDERATED_PENDING, S.AUTHENTICATED]
        assert outcome.user.federated_id == "g-123"

    def test_repeat_login_same_user(self, broker: AuthBroker) -> None:
        first = broker.authenticate(FederatedCredential("g-123", "Bob"))
        second = broker.authenticate(FederatedCredential("g-123", "Bob"))
        assert first.user.id == second.user.id
        assert first.payload != second.payload

    def test_store_unavailable(self, broker: AuthBroker) -> None:
        broker.resolver = MagicMock()
        broker.resolver.resolve.side_effect = StoreUnavailable("down")
        outcome = broker.authenticate(FederatedCredential("g-123", "Bob"))
        assert outcome.state is S.REJECTED
        assert outcome.trail[-2:] == [S.FEDERATED_PENDING, S.REJECTED]
        assert outcome.reason == REASON_STORE_UNAVAILABLE


def test_unknown_credential_type(broker: AuthBroker) -> None:
    with pytest.raises(TypeError):
        broker.authenticate(("alice", "pw1"))


class TestRegister:
    def test_register_logs_in(self, broker: AuthBroker) -> None:
        outcome = broker.register("alice", "pw1")
        assert outcome.authenticated
        assert outcome.user.username == "alice"

    def test_duplicate(self, broker: AuthBroker, store: UserStore) -> None:
        broker.register("alice", "pw1")
        outcome = broker.register("alice", "pw2")
        assert outcome.reason == REASON_DUPLICATE_USERNAME
        assert outcome.payload is None
        assert store.count_users() == 1

    def test_blank_input(self, broker: AuthBroker) -> None:
        assert broker.register("", "pw1").reason == REASON_INVALID_INPUT


class TestLoginAttempt:
    def test_terminal_states_are_terminal(self) -> None:
        attempt = LoginAttempt()
        attempt.advance(S.AWAITING_STRATEGY)
        attempt.advance(S.LOCAL_PENDING)
        attempt.advance(S.REJECTED)
        with pytest.raises(RuntimeError):
            attempt.advance(S.AUTHENTICATED)

    def test_cannot_skip_strategy_selection(self) -> None:
        with pytest.raises(RuntimeError):
            LoginAttempt().advance(S.AUTHENTICATED)
