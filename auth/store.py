"""
auth/store.py -- Persistence boundary for users and roles.

UserStore is the protocol the controller depends on. SqlUserStore is the
bundled SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper. SqlUserStore is the repository;
_row_to_user / _row_to_role are the mappers. Controller code never touches
SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email is UNIQUE and stored lower-cased (the controller normalizes
  before every call; lookups also compare on lower(email)). Two concurrent
  registrations for one address race on that constraint; the loser's
  IntegrityError is translated to DuplicateEmailError. Any other SQLAlchemy
  failure surfaces as StorageError.

  user_roles.user_id is the primary key, so a user holds at most one role.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmailError, StorageError
from auth.models import Role, User

logger = logging.getLogger("accessadmin.auth.store")

# Seed roles. Registration assigns id 2 by default (Settings.default_role_id).
DEFAULT_ROLES: tuple[Role, ...] = (
    Role(id=1, name="superadmin", permissions="restaurant_admin, users.manage, roles.manage"),
    Role(id=2, name="restaurant_admin", permissions=""),
    Role(id=3, name="staff", permissions="orders.read, orders.write"),
)


class UserStore(Protocol):
    """What AccessController needs from persistence."""

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_reset_token(self, token_digest: str) -> User | None: ...

    def find_id_by_email(self, email: str) -> int | None: ...

    def save(self, user: User) -> None: ...

    def assign_role(self, user_id: int, role_id: int) -> None: ...

    def delete_user(self, user_id: int) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("display_name", String(255), nullable=False, server_default=""),
    Column("reset_token", String(64), index=True),  # HMAC-SHA256 hex of the raw token
    Column("reset_token_expires_at", String(40)),  # ISO 8601, set together with reset_token
    Column("created_at", String(40), nullable=False),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("permissions", Text, nullable=False, server_default=""),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id"), nullable=False),
)

_user_with_role = select(
    _users,
    _roles.c.id.label("role_id"),
    _roles.c.name.label("role_name"),
    _roles.c.permissions.label("role_permissions"),
).select_from(
    _users.outerjoin(_user_roles, _users.c.id == _user_roles.c.user_id).outerjoin(
        _roles, _user_roles.c.role_id == _roles.c.id
    )
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _storage_errors(unique_email: bool = False) -> Iterator[None]:
    """Translate SQLAlchemy failures into the store's error contract.

    unique_email=True marks a statement whose only possible constraint
    violation is the users.email UNIQUE index.
    """
    try:
        yield
    except IntegrityError as exc:
        if unique_email:
            raise DuplicateEmailError() from exc
        raise StorageError("Constraint violation in user store.") from exc
    except SQLAlchemyError as exc:
        raise StorageError("User store unavailable.") from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlUserStore:
    """SQLAlchemy Core implementation of UserStore.

    Usage:
        store = SqlUserStore("sqlite:///:memory:")
        store.save(User(email="a@x.com", password_hash=hasher.hash("secret1")))
        user = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_default_roles()

    def _ensure_default_roles(self) -> None:
        """Insert any missing seed role. Idempotent -- safe on every startup."""
        with _storage_errors(), self.engine.connect() as conn:
            existing = set(conn.execute(select(_roles.c.id)).scalars())
            missing = [r for r in DEFAULT_ROLES if r.id not in existing]
            for role in missing:
                conn.execute(_roles.insert().values(id=role.id, name=role.name, permissions=role.permissions))
            conn.commit()
        if missing:
            logger.info("Seeded %d default role(s)", len(missing))

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user (with joined role) by email, case-insensitively."""
        with _storage_errors(), self.engine.connect() as conn:
            row = conn.execute(_user_with_role.where(func.lower(_users.c.email) == email.lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_reset_token(self, token_digest: str) -> User | None:
        """Look up the user holding the given recovery-token digest."""
        with _storage_errors(), self.engine.connect() as conn:
            row = conn.execute(_user_with_role.where(_users.c.reset_token == token_digest)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_id_by_email(self, email: str) -> int | None:
        with _storage_errors(), self.engine.connect() as conn:
            return conn.execute(select(_users.c.id).where(func.lower(_users.c.email) == email.lower())).scalar()

    def save(self, user: User) -> None:
        """Insert a user without an id; otherwise update every mutable field.

        On insert the assigned id is written back to user.id. Raises
        DuplicateEmailError if the email is already taken.
        """
        expires = user.reset_token_expires_at.isoformat() if user.reset_token_expires_at else None
        with _storage_errors(unique_email=True), self.engine.connect() as conn:
            if user.id is None:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        password_hash=user.password_hash,
                        display_name=user.display_name,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
                user.id = result.inserted_primary_key[0]
                return
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user.id)
                .values(
                    email=user.email,
                    password_hash=user.password_hash,
                    display_name=user.display_name,
                    reset_token=user.reset_token,
                    reset_token_expires_at=expires,
                )
            )
            conn.commit()
        if result.rowcount == 0:
            logger.warning("save() matched no row for user id=%s", user.id)

    def assign_role(self, user_id: int, role_id: int) -> None:
        """Give user_id exactly one role, replacing any previous assignment."""
        with _storage_errors(), self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            conn.execute(_user_roles.insert().values(user_id=user_id, role_id=role_id))
            conn.commit()

    def delete_user(self, user_id: int) -> None:
        """Remove a user and its role assignment in one transaction."""
        with _storage_errors(), self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()

    # ------------------------------------------------------------------
    # Role administration (out of band)
    # ------------------------------------------------------------------

    def create_role(self, role: Role) -> int:
        """Insert a role and return its id. Raises StorageError if the name exists."""
        with _storage_errors(), self.engine.connect() as conn:
            result = conn.execute(_roles.insert().values(name=role.name, permissions=role.permissions))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_role(self, role_id: int) -> Role | None:
        with _storage_errors(), self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        with _storage_errors(), self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.id)).fetchall()
        return [_row_to_role(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    role = None
    if row.role_id is not None:
        role = Role(id=row.role_id, name=row.role_name, permissions=row.role_permissions or "")
    expires = datetime.fromisoformat(row.reset_token_expires_at) if row.reset_token_expires_at else None
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        display_name=row.display_name or "",
        reset_token=row.reset_token if expires is not None else None,
        reset_token_expires_at=expires if row.reset_token is not None else None,
        role=role,
        created_at=row.created_at,
    )


def _row_to_role(row) -> Role:
    return Role(id=row.id, name=row.name, permissions=row.permissions or "")
