"""Unit tests for auth/store.py -- UserStore queries and action-token lifecycle.

Covers:
- (kind, email) uniqueness, and the same email allowed across kinds
- update_user() patching, unknown-field rejection, missing-user error
- get_principal() finds a user of either kind
- list_users() pagination edges and role filtering
- search_users() case-insensitivity and literal % / _
- action tokens: upsert per purpose, TTL on read, purge
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from auth.models import ActionToken, Role, TokenPurpose, User, UserKind
from auth.store import UserStore, _action_tokens
from core.errors import DuplicateEmail, PageOutOfRange, UserNotFound


def _user(email: str, kind: UserKind = UserKind.student, role: Role | None = None, **kw) -> User:
    return User(
        kind=kind,
        role=role or Role(kind.value),
        first_name=kw.pop("first_name", "Ada"),
        last_name=kw.pop("last_name", "Lovelace"),
        email=email,
        hashed_password="not-a-real-hash",
        **kw,
    )


def _age_tokens(store: UserStore, seconds: float) -> None:
    """Push every stored token's created_at back in time."""
    with store.engine.begin() as conn:
        conn.execute(update(_action_tokens).values(created_at=_action_tokens.c.created_at - seconds))


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:", token_ttl_seconds=1800)
    yield s
    s.close()


class TestUsers:
    def test_create_assigns_id_and_created_at(self, store):
        user = store.create_user(_user("ada@x.com"))
        assert user.id and len(user.id) == 32
        assert user.created_at
        fetched = store.get_by_id(UserKind.student, user.id)
        assert fetched.email == "ada@x.com"
        assert fetched.is_verified is False
        assert fetched.role is Role.student

    def test_duplicate_email_same_kind(self, store):
        store.create_user(_user("ada@x.com"))
        with pytest.raises(DuplicateEmail):
            store.create_user(_user("ada@x.com"))
        assert store.list_users(UserKind.student, Role.student).count == 1

    def test_same_email_different_kind(self, store):
        store.create_user(_user("ada@x.com"))
        store.create_user(_user("ada@x.com", kind=UserKind.investor))
        assert store.get_by_email(UserKind.investor, "ada@x.com") is not None

    def test_get_by_id_is_kind_scoped(self, store):
        user = store.create_user(_user("ada@x.com"))
        assert store.get_by_id(UserKind.investor, user.id) is None

    def test_get_principal_crosses_kinds(self, store):
        investor = store.create_user(_user("inv@x.com", kind=UserKind.investor, role=Role.admin))
        principal = store.get_principal(investor.id)
        assert principal.kind is UserKind.investor
        assert principal.role is Role.admin
        assert store.get_principal("missing") is None

    def test_update_user(self, store):
        user = store.create_user(_user("ada@x.com"))
        updated = store.update_user(UserKind.student, user.id, address="2 Road", is_updated=True)
        assert updated.address == "2 Road"
        assert updated.is_updated is True

    def test_update_rejects_unknown_fields(self, store):
        user = store.create_user(_user("ada@x.com"))
        with pytest.raises(ValueError):
            store.update_user(UserKind.student, user.id, role="admin")

    def test_update_missing_user(self, store):
        with pytest.raises(UserNotFound):
            store.update_user(UserKind.student, "nope", address="x")

    def test_ping(self, store):
        assert store.ping() is True


class TestListUsers:
    @pytest.fixture
    def populated(self, store):
        for i in range(23):
            store.create_user(_user(f"s{i}@x.com"))
        store.create_user(_user("boss@x.com", role=Role.admin))
        return store

    def test_no_page_returns_everything(self, populated):
        page = populated.list_users(UserKind.student, Role.student)
        assert page.count == 23
        assert page.pages == 1
        assert len(page.items) == 23

    def test_admins_not_listed(self, populated):
        emails = {u.email for u in populated.list_users(UserKind.student, Role.student).items}
        assert "boss@x.com" not in emails

    def test_pages(self, populated):
        first = populated.list_users(UserKind.student, Role.student, page=1, page_size=10)
        last = populated.list_users(UserKind.student, Role.student, page=3, page_size=10)
        assert first.pages == 3 and len(first.items) == 10
        assert len(last.items) == 3
        assert not {u.id for u in first.items} & {u.id for u in last.items}

    @pytest.mark.parametrize("page", [0, 4])
    def test_out_of_range(self, populated, page):
        with pytest.raises(PageOutOfRange):
            populated.list_users(UserKind.student, Role.student, page=page, page_size=10)

    def test_explicit_page_of_empty_set(self, store):
        with pytest.raises(PageOutOfRange):
            store.list_users(UserKind.investor, Role.investor, page=1)
        assert store.list_users(UserKind.investor, Role.investor).items == []


class TestSearch:
    def test_case_insensitive_across_fields(self, store):
        store.create_user(_user("ada@x.com", address="1 Lane", country_of_residence="UK"))
        store.create_user(_user("alan@x.com", first_name="Alan", last_name="Turing", state_of_residence="Wilmslow"))
        assert [u.email for u in store.search_users(UserKind.student, "LOVE")] == ["ada@x.com"]
        assert [u.email for u in store.search_users(UserKind.student, "wilms")] == ["alan@x.com"]
        assert len(store.search_users(UserKind.student, "x.com")) == 2

    def test_no_match_is_empty(self, store):
        store.create_user(_user("ada@x.com"))
        assert store.search_users(UserKind.student, "zzz") == []
        assert store.search_users(UserKind.investor, "ada") == []

    def test_wildcards_are_literal(self, store):
        store.create_user(_user("ada@x.com"))
        assert store.search_users(UserKind.student, "%") == []
        assert store.search_users(UserKind.student, "a_a") == []


class TestActionTokens:
    def _token(self, user: User, value: str, purpose=TokenPurpose.verify_email) -> ActionToken:
        return ActionToken(kind=user.kind, user_id=user.id, token=value, purpose=purpose)

    def test_save_and_get(self, store):
        user = store.create_user(_user("ada@x.com"))
        store.save_action_token(self._token(user, "t1"))
        found = store.get_action_token(UserKind.student, user.id, "t1", TokenPurpose.verify_email)
        assert found is not None and found.token == "t1"
        assert store.get_action_token(UserKind.student, user.id, "t1", TokenPurpose.reset_password) is None
        assert store.get_action_token(UserKind.student, user.id, "other", TokenPurpose.verify_email) is None

    def test_new_token_replaces_old_for_same_purpose(self, store):
        user = store.create_user(_user("ada@x.com"))
        store.save_action_token(self._token(user, "old"))
        store.save_action_token(self._token(user, "reset", TokenPurpose.reset_password))
        store.save_action_token(self._token(user, "new"))
        assert store.get_action_token(UserKind.student, user.id, "old", TokenPurpose.verify_email) is None
        assert store.get_outstanding_token(UserKind.student, user.id, TokenPurpose.verify_email).token == "new"
        assert store.get_outstanding_token(UserKind.student, user.id, TokenPurpose.reset_password).token == "reset"

    def test_expired_token_is_absent(self, store):
        user = store.create_user(_user("ada@x.com"))
        store.save_action_token(self._token(user, "t1"))
        _age_tokens(store, 1801)
        assert store.get_action_token(UserKind.student, user.id, "t1", TokenPurpose.verify_email) is None
        assert store.get_outstanding_token(UserKind.student, user.id, TokenPurpose.verify_email) is None

    def test_token_just_inside_ttl(self, store):
        user = store.create_user(_user("ada@x.com"))
        store.save_action_token(self._token(user, "t1"))
        _age_tokens(store, 1700)
        assert store.get_action_token(UserKind.student, user.id, "t1", TokenPurpose.verify_email) is not None

    def test_delete(self, store):
        user = store.create_user(_user("ada@x.com"))
        store.save_action_token(self._token(user, "t1"))
        assert store.delete_action_token(UserKind.student, user.id, "t1") is True
        assert store.delete_action_token(UserKind.student, user.id, "t1") is False

    def test_purge_expired(self, store):
        a = store.create_user(_user("a@x.com"))
        b = store.create_user(_user("b@x.com"))
        store.save_action_token(self._token(a, "ta"))
        _age_tokens(store, 3600)
        store.save_action_token(self._token(b, "tb"))
        assert store.purge_expired_tokens() == 1
        assert store.get_outstanding_token(UserKind.student, b.id, TokenPurpose.verify_email).token == "tb"

    def test_created_at_is_reported(self, store):
        user = store.create_user(_user("ada@x.com"))
        saved = store.save_action_token(self._token(user, "t1"))
        found = store.get_outstanding_token(UserKind.student, user.id, TokenPurpose.verify_email)
        assert datetime.fromisoformat(saved.created_at) <= datetime.now(timezone.utc)
        assert found.created_at == saved.created_at
