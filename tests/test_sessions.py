"""Tests for auth/sessions.py and auth/tokens.py -- the Session Serializer.

Covers:
- deserialize(serialize(user)) returns a user with the same id
- the payload carries no password hash, salt or secret
- forged, expired, revoked and orphaned payloads raise SessionInvalid
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from jose import jwt

from auth.credentials import CredentialVerifier
from auth.errors import SessionInvalid, StoreUnavailable
from auth.models import User
from auth.sessions import SessionSerializer
from auth.store import UserStore
from auth.tokens import decode_session_token, encode_session_token
from core.config import get_settings


@pytest.fixture
def serializer(store: UserStore) -> SessionSerializer:
    return SessionSerializer(store)


@pytest.fixture
def alice(store: UserStore) -> User:
    user = CredentialVerifier(store).register("alice", "pw1")
    store.set_secret(user.id, "hello")
    return store.get_by_id(user.id)


def test_round_trip_local_user(serializer: SessionSerializer, alice: User) -> None:
    assert serializer.deserialize(serializer.serialize(alice)).id == alice.id


def test_round_trip_federated_user(serializer: SessionSerializer, store: UserStore) -> None:
    from auth.resolver import IdentityResolver

    bob = IdentityResolver(store).resolve("g-123", "Bob")
    assert serializer.deserialize(serializer.serialize(bob)).id == bob.id


def test_payload_embeds_only_identity_reference(serializer: SessionSerializer, alice: User) -> None:
    payload = serializer.serialize(alice)
    claims = jwt.get_unverified_claims(payload)
    assert set(claims) == {"sub", "sid", "iat", "exp"}
    assert claims["sub"] == str(alice.id)
    for sensitive in (alice.password_hash, alice.password_salt, alice.secret):
        assert sensitive not in payload


def test_each_login_gets_its_own_session_id(serializer: SessionSerializer, alice: User) -> None:
    first = jwt.get_unverified_claims(serializer.serialize(alice))
    second = jwt.get_unverified_claims(serializer.serialize(alice))
    assert first["sid"] != second["sid"]


def test_unpersisted_user_cannot_be_serialized(serializer: SessionSerializer) -> None:
    with pytest.raises(ValueError):
        serializer.serialize(User(username="ghost", password_hash="x"))


@pytest.mark.parametrize("payload", ["", "garbage", "a.b.c"])
def test_unverifiable_payload_rejected(serializer: SessionSerializer, payload: str) -> None:
    with pytest.raises(SessionInvalid):
        serializer.deserialize(payload)


def test_tampered_signature_rejected(serializer: SessionSerializer, alice: User) -> None:
    payload = serializer.serialize(alice)
    forged = jwt.encode(jwt.get_unverified_claims(payload), "x" * 32, algorithm="HS256")
    with pytest.raises(SessionInvalid):
        serializer.deserialize(forged)


def test_expired_payload_rejected(serializer: SessionSerializer, alice: User) -> None:
    claims = jwt.get_unverified_claims(serializer.serialize(alice))
    claims["exp"] = claims["iat"] - 10
    expired = jwt.encode(claims, get_settings().secret_key, algorithm="HS256")
    assert decode_session_token(expired) is None
    with pytest.raises(SessionInvalid):
        serializer.deserialize(expired)


def test_user_that_no_longer_resolves_rejected(serializer: SessionSerializer) -> None:
    payload = encode_session_token(999_999, "sid-orphan")
    with pytest.raises(SessionInvalid):
        serializer.deserialize(payload)


def test_revoked_payload_rejected(serializer: SessionSerializer, alice: User) -> None:
    payload = serializer.serialize(alice)
    assert serializer.revoke(payload) is True
    with pytest.raises(SessionInvalid):
        serializer.deserialize(payload)


def test_revoking_one_session_keeps_the_other(serializer: SessionSerializer, alice: User) -> None:
    laptop = serializer.serialize(alice)
    phone = serializer.serialize(alice)
    serializer.revoke(laptop)
    assert serializer.deserialize(phone).id == alice.id


def test_revoke_unverifiable_payload_is_noop(serializer: SessionSerializer) -> None:
    assert serializer.revoke("garbage") is False


def test_revoke_survives_failed_cleanup(serializer: SessionSerializer, store: UserStore, alice: User) -> None:
    payload = serializer.serialize(alice)
    store.purge_expired_revocations = MagicMock(side_effect=StoreUnavailable("down"))
    assert serializer.revoke(payload) is True
    with pytest.raises(SessionInvalid):
        serializer.deserialize(payload)
