"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route, broker and
guard code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  username is UNIQUE and (federated_provider, federated_id) is UNIQUE at the
  SQL level. SQLite treats two NULLs as distinct in UNIQUE constraints, so
  local-only users (NULL federated_id) and collision-renamed federated users
  (NULL username) never conflict with each other. IntegrityError propagates to
  the caller: the verifier turns it into DuplicateUsername, the resolver
  treats it as "someone else just created it" and re-reads.

Availability:
  OperationalError (unreachable file, locked database, dropped connection) is
  translated to StoreUnavailable so callers never handle raw driver errors.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.errors import StoreUnavailable
from auth.models import User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), unique=True),  # NULL allowed, unique when present
    Column("password_hash", Text),  # NULL for federated-only users
    Column("password_salt", String(64)),
    Column("federated_provider", String(30)),  # "google"
    Column("federated_id", String(255)),  # provider's stable subject
    Column("secret", Text),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    UniqueConstraint("federated_provider", "federated_id", name="uq_users_federated"),
)

# Session ids revoked by logout before their JWT expiry. Rows are only needed
# until expires_at; purge_expired_revocations() drops the rest.
_revoked_sessions = Table(
    "revoked_sessions",
    _metadata,
    Column("sid", String(64), primary_key=True),
    Column("expires_at", Integer, nullable=False),  # unix seconds
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and revoked session ids.

    Usage:
        store = UserStore("sqlite:///:memory:")
        uid = store.create_user(User(username="alice", password_hash=..., password_salt=...))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        with self._connect() as conn:
            _metadata.create_all(conn)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            raise StoreUnavailable("user store unavailable") from exc

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises ValueError if the user has neither local credentials nor a
        federated identity. Raises sqlalchemy.exc.IntegrityError if the
        username or (federated_provider, federated_id) already exists.
        """
        if not user.has_auth_path:
            raise ValueError("A user needs local credentials or a federated identity.")
        with self._connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    password_hash=user.password_hash,
                    password_salt=user.password_salt,
                    federated_provider=user.federated_provider,
                    federated_id=user.federated_id,
                    secret=user.secret,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_federated_id(self, provider: str, federated_id: str) -> User | None:
        """Look up a user by (federated_provider, federated_id). Returns None if not linked."""
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where(
                    (_users.c.federated_provider == provider) & (_users.c.federated_id == federated_id)
                )
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def set_secret(self, user_id: int, secret: str | None) -> bool:
        """Overwrite the secret of one user. Last write wins.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self._connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(secret=secret))
            conn.commit()
        return result.rowcount > 0

    def list_users_with_secrets(self) -> list[User]:
        """Return every user whose secret is not NULL, oldest account first."""
        with self._connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.secret.is_not(None)).order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_last_login(self, user_id: int) -> None:
        """Stamp the current UTC timestamp as last_login for the given user."""
        with self._connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))
            conn.commit()

    def count_users(self) -> int:
        with self._connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Session revocation
    # ------------------------------------------------------------------

    def revoke_session(self, sid: str, expires_at: int) -> None:
        """Record a session id as revoked until expires_at (unix seconds).

        Idempotent: revoking an already-revoked sid is a no-op.
        """
        with self._connect() as conn:
            try:
                conn.execute(_revoked_sessions.insert().values(sid=sid, expires_at=expires_at))
                conn.commit()
            except IntegrityError:
                conn.rollback()

    def is_session_revoked(self, sid: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(_revoked_sessions.select().where(_revoked_sessions.c.sid == sid)).fetchone()
        return row is not None

    def purge_expired_revocations(self) -> int:
        """Delete revocation rows whose JWT would have expired anyway. Returns rows removed."""
        with self._connect() as conn:
            result = conn.execute(_revoked_sessions.delete().where(_revoked_sessions.c.expires_at < int(time.time())))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        password_salt=row.password_salt,
        federated_provider=row.federated_provider,
        federated_id=row.federated_id,
        secret=row.secret,
        created_at=row.created_at,
        last_login=row.last_login,
    )
