"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper + Unit of Work.
UserStore owns the engine and the schema. UserUnitOfWork groups the reads and
writes of one AuthService operation on a single connection; nothing it writes
is visible to other connections until commit(). _row_to_user / _user_to_values
are the mappers. Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the database, not by a check-then-insert in
  code. Two concurrent registrations for the same address both pass the
  service's friendly pre-check, but only one INSERT survives; the other gets
  sqlalchemy.exc.IntegrityError.

Timestamps are stored as ISO 8601 text (UTC) and mapped back to aware
datetimes, so the lockout comparison works the same on every backend.

DB path: auth/authgate.db unless DATABASE_URL is set. In-memory SQLite URLs
are refused: every unit of work needs its own connection and transaction.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Connection, Engine, make_url

from auth.models import User

logger = logging.getLogger("authgate.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'authgate.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(256), nullable=False, unique=True),  # always normalized
    Column("password_hash", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("login_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(40)),  # ISO 8601; NULL = never locked
    Column("last_login_at", String(40)),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Column("updated_by", String(256)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a committing writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_memory_url(db_url: str) -> bool:
    """True for plain :memory: and named mode=memory SQLite URLs.

    SQLAlchemy pools those per thread or as a single connection, so units of
    work opened by concurrent tasks on one event loop would share a DBAPI
    connection and one task's rollback would discard another's writes.
    """
    url = make_url(db_url)
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


class UserUnitOfWork:
    """Reads and writes bound to one connection and one transaction.

    update() and insert() execute immediately inside the open transaction;
    commit() makes them durable. Leaving UserStore.unit_of_work() without
    commit() rolls everything back.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def find_by_normalized_email(self, email: str) -> User | None:
        """Look up a user by an already-normalized email. Returns None if absent."""
        row = self._conn.execute(_users.select().where(_users.c.email == email)).first()
        return _row_to_user(row) if row is not None else None

    def insert(self, user: User) -> User:
        """Insert a new user, assigning its id if it has none.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        if user.id is None:
            user.id = str(uuid.uuid4())
        self._conn.execute(_users.insert().values(id=user.id, **_user_to_values(user)))
        logger.debug("Inserted user %s", user.id)
        return user

    def update(self, user: User) -> bool:
        """Replace all mutable fields of the user with the given id.

        Returns True if a row was updated, False if the id was not found.
        """
        result = self._conn.execute(_users.update().where(_users.c.id == user.id).values(**_user_to_values(user)))
        return result.rowcount > 0

    def commit(self) -> None:
        self._conn.commit()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        with store.unit_of_work() as uow:
            user = uow.find_by_normalized_email("alice@example.com")
            user.login_attempts += 1
            uow.update(user)
            uow.commit()
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            if _is_memory_url(db_url):
                raise ValueError(f"In-memory SQLite is not supported by UserStore: {db_url!r}. Use a file URL.")
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def unit_of_work(self) -> Iterator[UserUnitOfWork]:
        """Open a connection and yield a UserUnitOfWork bound to it.

        The connection is closed on exit; an uncommitted transaction is
        rolled back at that point.
        """
        with self.engine.connect() as conn:
            yield UserUnitOfWork(conn)

    # ------------------------------------------------------------------
    # Single-statement helpers (API session lookup, admin CLI)
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).first()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by already-normalized email. Returns None if not found."""
        with self.unit_of_work() as uow:
            return uow.find_by_normalized_email(email)

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def set_active(self, user_id: str, active: bool, updated_by: str | None = None) -> bool:
        """Activate or deactivate an account.

        Deactivation is an administrative action; the authentication service
        only reads is_active. Returns False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(
                    is_active=1 if active else 0,
                    updated_at=_to_iso(datetime.now(timezone.utc)),
                    updated_by=updated_by,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _user_to_values(user: User) -> dict:
    return {
        "email": user.email,
        "password_hash": user.password_hash,
        "is_active": 1 if user.is_active else 0,
        "login_attempts": user.login_attempts,
        "locked_until": _to_iso(user.locked_until),
        "last_login_at": _to_iso(user.last_login_at),
        "created_at": _to_iso(user.created_at),
        "updated_at": _to_iso(user.updated_at),
        "updated_by": user.updated_by,
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
        login_attempts=row.login_attempts,
        locked_until=_from_iso(row.locked_until),
        last_login_at=_from_iso(row.last_login_at),
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
        updated_by=row.updated_by,
    )
