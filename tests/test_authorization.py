"""Unit tests for auth/authorization.py -- the admin role gate.

Covers:
- admin of either kind is allowed
- non-admin is denied; unknown principal is reported separately
- both refusals are not .allowed
"""

from auth.authorization import Decision, authorize
from auth.models import Role, User, UserKind


def _create(store, kind: UserKind, role: Role, email: str) -> User:
    return store.create_user(
        User(kind=kind, role=role, first_name="A", last_name="B", email=email, hashed_password="h", is_verified=True)
    )


def test_admin_allowed(user_store):
    admin = _create(user_store, UserKind.student, Role.admin, "boss@x.com")
    assert authorize(user_store, admin.id) is Decision.ALLOW
    assert authorize(user_store, admin.id).allowed


def test_investor_collection_admin_allowed(user_store):
    admin = _create(user_store, UserKind.investor, Role.admin, "boss@x.com")
    assert authorize(user_store, admin.id) is Decision.ALLOW


def test_student_denied(user_store):
    student = _create(user_store, UserKind.student, Role.student, "ada@x.com")
    decision = authorize(user_store, student.id)
    assert decision is Decision.DENY
    assert not decision.allowed


def test_unknown_principal(user_store):
    decision = authorize(user_store, "0" * 32)
    assert decision is Decision.UNKNOWN_PRINCIPAL
    assert not decision.allowed
