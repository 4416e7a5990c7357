"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and action tokens.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_token are the mappers.
Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Search input is escaped before it is placed in a LIKE pattern, so "%" and
  "_" typed by a client match literally.

Uniqueness:
  UNIQUE(kind, email) backs up the service's lookup-then-insert check. Two
  concurrent registrations for the same address both pass the lookup; the
  second INSERT then fails here and surfaces as DuplicateEmail.

  UNIQUE(kind, user_id, purpose) on action_tokens makes issuance an upsert:
  a newer verification or reset token replaces the older one, so a stale
  link stops working as soon as a fresh one is sent.

Token expiry:
  created_at is stored as epoch seconds (REAL). Every read filters on
  created_at > now - ttl, so an expired token is absent even before the
  background reaper (purge_expired_tokens) deletes the row.

Layer rule: no imports from api/, accounts/, mail/, or outreach/. Import from
core/ is allowed -- core/ is the kernel.
"""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import PROFILE_FIELDS, ActionToken, Role, TokenPurpose, User, UserKind
from core.errors import DuplicateEmail, PageOutOfRange, UserNotFound

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("kind", String(16), nullable=False),
    Column("role", String(16), nullable=False),
    Column("email", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("middle_name", String(100)),
    Column("last_name", String(100), nullable=False),
    Column("is_verified", Boolean, nullable=False, server_default="0"),
    Column("is_updated", Boolean, nullable=False, server_default="0"),
    Column("phone_number", String(40)),
    Column("gender", String(16)),
    Column("dob", String(32)),
    Column("address", Text),
    Column("country_of_residence", String(100)),
    Column("state_of_residence", String(100)),
    Column("preferred_training_days", Text),
    Column("info_source", Text),
    Column("nok_name", String(200)),
    Column("nok_relationship", String(100)),
    Column("nok_address", Text),
    Column("nok_phone_number", String(40)),
    Column("level_of_forex_experience", String(32)),
    Column("highest_education_attained", Text),
    Column("risk_appetite", Text),
    Column("referral_name", String(200)),
    Column("legal_knowledge_and_acceptance", Text),
    Column("questions_and_comments", Text),
    Column("created_at", String(40), nullable=False),
    UniqueConstraint("kind", "email", name="uq_users_kind_email"),
)

_action_tokens = Table(
    "action_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("kind", String(16), nullable=False),
    Column("user_id", String(32), nullable=False),
    Column("purpose", String(32), nullable=False),
    Column("token", String(128), nullable=False, index=True),
    Column("created_at", Float, nullable=False),  # epoch seconds
    UniqueConstraint("kind", "user_id", "purpose", name="uq_action_tokens_owner_purpose"),
)

# Columns matched by search_users().
_SEARCH_COLUMNS = (
    _users.c.first_name,
    _users.c.middle_name,
    _users.c.last_name,
    _users.c.email,
    _users.c.address,
    _users.c.country_of_residence,
    _users.c.state_of_residence,
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _escape_like(text_: str) -> str:
    return text_.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class Page:
    """One page of users plus the numbers the client needs to paginate."""

    items: list[User] = field(default_factory=list)
    count: int = 0
    pages: int = 1


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and ActionToken entities.

    Usage:
        store = UserStore("sqlite:///degenius.db")
        user = store.create_user(User(kind=UserKind.student, ...))
        store.get_by_email(UserKind.student, "ada@x.com")
        store.close()
    """

    def __init__(self, db_url: str, token_ttl_seconds: int = 1800) -> None:
        self.token_ttl_seconds = token_ttl_seconds
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and created_at filled in.

        Raises DuplicateEmail if the (kind, email) pair is already taken.
        """
        user.id = user.id or _new_id()
        user.created_at = _now_iso()
        values = {c.name: getattr(user, c.name) for c in _users.columns}
        values["kind"] = user.kind.value
        values["role"] = user.role.value
        try:
            with self.engine.connect() as conn:
                conn.execute(_users.insert().values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return user

    def get_by_email(self, kind: UserKind, email: str) -> User | None:
        """Exact, case-sensitive email match within one user kind."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.kind == kind.value) & (_users.c.email == email))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, kind: UserKind, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.kind == kind.value) & (_users.c.id == user_id))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_principal(self, user_id: str) -> User | None:
        """Look up a user by id regardless of kind.

        The authorization gate uses this: an admin may live in either
        collection, and the acting principal's own record is what decides.
        """
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, kind: UserKind, user_id: str, **fields) -> User:
        """Apply a patch and return the updated user.

        Accepted fields: PROFILE_FIELDS plus is_verified, is_updated,
        hashed_password. Raises UserNotFound if no row matched.
        """
        allowed = set(PROFILE_FIELDS) | {"is_verified", "is_updated", "hashed_password"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where((_users.c.kind == kind.value) & (_users.c.id == user_id)).values(**fields)
            )
            conn.commit()
        if result.rowcount == 0:
            raise UserNotFound()
        updated = self.get_by_id(kind, user_id)
        if updated is None:
            raise UserNotFound()
        return updated

    def list_users(self, kind: UserKind, role: Role, page: int | None = None, page_size: int = 10) -> Page:
        """Return users of one kind and role, optionally one page at a time.

        page=None returns every matching user with pages=1. With a page,
        skip = (page - 1) * page_size; page > ceil(count / page_size) raises
        PageOutOfRange (so any explicit page of an empty result is out of
        range).
        """
        where = (_users.c.kind == kind.value) & (_users.c.role == role.value)
        query = _users.select().where(where).order_by(_users.c.created_at, _users.c.id)
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_users).where(where)).scalar() or 0
            if page is None:
                rows = conn.execute(query).fetchall()
                return Page(items=[_row_to_user(r) for r in rows], count=count, pages=1)

            if page < 1 or page_size < 1:
                raise PageOutOfRange()
            pages = math.ceil(count / page_size)
            if page > pages:
                raise PageOutOfRange()
            rows = conn.execute(query.offset((page - 1) * page_size).limit(page_size)).fetchall()
        return Page(items=[_row_to_user(r) for r in rows], count=count, pages=pages)

    def search_users(self, kind: UserKind, query: str) -> list[User]:
        """Case-insensitive substring match across name, email, address and residence.

        Returns an empty list when nothing matches -- never raises for that.
        """
        pattern = f"%{_escape_like(query.strip())}%"
        clause = or_(*(col.ilike(pattern, escape="\\") for col in _SEARCH_COLUMNS))
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().where((_users.c.kind == kind.value) & clause).order_by(_users.c.first_name)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Action tokens
    # ------------------------------------------------------------------

    def save_action_token(self, token: ActionToken) -> ActionToken:
        """Store a token, replacing any outstanding one for the same owner and purpose."""
        created = time.time()
        owner = (
            (_action_tokens.c.kind == token.kind.value)
            & (_action_tokens.c.user_id == token.user_id)
            & (_action_tokens.c.purpose == token.purpose.value)
        )
        with self.engine.connect() as conn:
            conn.execute(_action_tokens.delete().where(owner))
            conn.execute(
                _action_tokens.insert().values(
                    kind=token.kind.value,
                    user_id=token.user_id,
                    purpose=token.purpose.value,
                    token=token.token,
                    created_at=created,
                )
            )
            conn.commit()
        token.created_at = datetime.fromtimestamp(created, timezone.utc).isoformat()
        return token

    def get_action_token(self, kind: UserKind, user_id: str, token: str, purpose: TokenPurpose) -> ActionToken | None:
        """Exact (user, token) lookup. Does not consume the token."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _action_tokens.select().where(
                    (_action_tokens.c.kind == kind.value)
                    & (_action_tokens.c.user_id == user_id)
                    & (_action_tokens.c.token == token)
                    & (_action_tokens.c.purpose == purpose.value)
                    & (_action_tokens.c.created_at > self._cutoff())
                )
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    def get_outstanding_token(self, kind: UserKind, user_id: str, purpose: TokenPurpose) -> ActionToken | None:
        """Return the live token for an owner and purpose, if one exists."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _action_tokens.select().where(
                    (_action_tokens.c.kind == kind.value)
                    & (_action_tokens.c.user_id == user_id)
                    & (_action_tokens.c.purpose == purpose.value)
                    & (_action_tokens.c.created_at > self._cutoff())
                )
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    def delete_action_token(self, kind: UserKind, user_id: str, token: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _action_tokens.delete().where(
                    (_action_tokens.c.kind == kind.value)
                    & (_action_tokens.c.user_id == user_id)
                    & (_action_tokens.c.token == token)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def purge_expired_tokens(self) -> int:
        """Delete tokens older than the TTL. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_action_tokens.delete().where(_action_tokens.c.created_at <= self._cutoff()))
            conn.commit()
        return result.rowcount

    def _cutoff(self) -> float:
        return time.time() - self.token_ttl_seconds

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    data = dict(row._mapping)
    data["kind"] = UserKind(data["kind"])
    data["role"] = Role(data["role"])
    data["is_verified"] = bool(data["is_verified"])
    data["is_updated"] = bool(data["is_updated"])
    return User(**data)


def _row_to_token(row) -> ActionToken:
    return ActionToken(
        kind=UserKind(row.kind),
        user_id=row.user_id,
        token=row.token,
        purpose=TokenPurpose(row.purpose),
        created_at=datetime.fromtimestamp(row.created_at, timezone.utc).isoformat(),
    )
