"""
tests/conftest.py -- Shared test fixtures for Degenius integration tests.

This module provides:
  - RecordingMailer: stands in for mail.sender.Mailer and keeps every link sent
  - user_store / outreach_store: isolated in-memory DBs, one pair per test
  - client: TestClient over the real app with a patched lifespan
  - admin: a verified admin plus a session token for it
  - register_student / verified_student: helpers that walk the real HTTP flow

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any project import: get_settings()
is cached on first use and auth.tokens reads it at import time.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from urllib.parse import parse_qs, urlparse

# CRITICAL: Set before any auth/core import so get_settings() auto-generates
# SECRET_KEY in dev mode and the login/register limits never trip mid-suite.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("FRONTEND_URL", "https://app.degenius.test")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
os.environ.setdefault("EMAIL_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User, UserKind
from auth.store import UserStore
from auth.tokens import create_session_token
from main import create_admin
from outreach.store import OutreachStore

PASSWORD = "Str0ng!Pass"


def ada_payload(**overrides) -> dict:
    """Wire-format registration body for Ada Lovelace."""
    body = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@x.com",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
        "phoneNumber": "123",
        "address": "1 Lane",
        "countryOfResidence": "UK",
        "stateOfResidence": "London",
        "gender": "Female",
        "DOB": "1815-12-10",
    }
    body.update(overrides)
    return body


def link_params(link: str) -> tuple[str, str]:
    """Return (userId, token) from an emailed verification or reset link."""
    qs = parse_qs(urlparse(link).query)
    return qs["userId"][0], qs["token"][0]


# ---------------------------------------------------------------------------
# Mailer double
# ---------------------------------------------------------------------------


class RecordingMailer:
    """Same send_* surface as Mailer; records (kind, to, link) instead of sending."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_verification(self, to: str, first_name: str, link: str) -> None:
        self.sent.append(("verify", to, link))

    def send_password_reset(self, to: str, first_name: str, link: str) -> None:
        self.sent.append(("reset", to, link))

    def last(self, kind: str, to: str | None = None) -> str:
        """Most recent link of the given kind (optionally to one address)."""
        for sent_kind, sent_to, link in reversed(self.sent):
            if sent_kind == kind and (to is None or sent_to == to):
                return link
        raise AssertionError(f"no {kind} mail recorded for {to or 'anyone'}")


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=_memory_url("test_users"))
    yield store
    store.close()


@pytest.fixture
def outreach_store() -> Generator[OutreachStore, None, None]:
    store = OutreachStore(db_url=_memory_url("test_outreach"))
    yield store
    store.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


def _patch_lifespan(user_store: UserStore, outreach_store: OutreachStore, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.outreach_store = outreach_store
        app.state.mailer = mailer
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def client(user_store, outreach_store, mailer) -> Generator[TestClient, None, None]:
    """TestClient over the real app, wired to this test's stores and mailer."""
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(user_store, outreach_store, mailer)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def admin(user_store) -> tuple[User, str]:
    """A verified admin in the student collection and a session token for it."""
    user = create_admin(user_store, UserKind.student, "admin@degenius.com", "Grace", "Hopper", PASSWORD, PASSWORD)
    return user, create_session_token(user)


# ---------------------------------------------------------------------------
# Flow helpers
# ---------------------------------------------------------------------------


def register(client: TestClient, kind_path: str = "student", **overrides):
    return client.post(f"/api/{kind_path}/register", json=ada_payload(**overrides))


def register_and_verify(client: TestClient, mailer: RecordingMailer, kind_path: str = "student", **overrides) -> str:
    """Register through the API, follow the emailed link, and return the user id."""
    resp = register(client, kind_path, **overrides)
    assert resp.status_code == 201, resp.text
    email = overrides.get("email", "ada@x.com")
    user_id, token = link_params(mailer.last("verify", email))
    resp = client.get(f"/api/{kind_path}/verify-email/{user_id}/{token}")
    assert resp.status_code == 200, resp.text
    return user_id
