"""
outreach/store.py -- SQLAlchemy Core persistence for outreach submissions.

Pattern: Repository + Data Mapper, same as auth/store.py.

UNIQUE(email) on email_subscriptions is the duplicate backstop; the insert
translates IntegrityError into AlreadySubscribed so the route needs no
lookup-then-insert dance.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import AlreadySubscribed
from outreach.models import ContactMessage, EmailSubscription, Feedback

_metadata = MetaData()

_contact_messages = Table(
    "contact_messages",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("email", String(255), nullable=False),
    Column("message", Text, nullable=False),
    Column("phone_number", String(40)),
    Column("created_at", String(40), nullable=False),
)

_feedback = Table(
    "feedback",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("email", String(255), nullable=False),
    Column("message", Text, nullable=False, server_default=""),
    Column("rating", Integer, nullable=False, server_default="1"),
    Column("created_at", String(40), nullable=False),
)

_subscriptions = Table(
    "email_subscriptions",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("created_at", String(40), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OutreachStore:
    """Repository for contact messages, feedback, and newsletter subscriptions."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        _metadata.create_all(self.engine)

    def add_contact_message(self, msg: ContactMessage) -> ContactMessage:
        msg.created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _contact_messages.insert().values(
                    name=msg.name,
                    email=msg.email,
                    message=msg.message,
                    phone_number=msg.phone_number,
                    created_at=msg.created_at,
                )
            )
            conn.commit()
        msg.id = result.inserted_primary_key[0]
        return msg

    def add_feedback(self, fb: Feedback) -> Feedback:
        fb.created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _feedback.insert().values(
                    name=fb.name,
                    email=fb.email,
                    message=fb.message,
                    rating=fb.rating,
                    created_at=fb.created_at,
                )
            )
            conn.commit()
        fb.id = result.inserted_primary_key[0]
        return fb

    def add_subscription(self, sub: EmailSubscription) -> EmailSubscription:
        """Insert a subscription. Raises AlreadySubscribed for a known email."""
        sub.created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_subscriptions.insert().values(email=sub.email, created_at=sub.created_at))
                conn.commit()
        except IntegrityError as exc:
            raise AlreadySubscribed() from exc
        sub.id = result.inserted_primary_key[0]
        return sub

    def count_subscriptions(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_subscriptions)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()
