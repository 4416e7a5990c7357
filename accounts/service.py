"""
accounts/service.py -- Account lifecycle for students and investors.

Per user:
    Unregistered -> Registered (unverified) -[verify email]-> Verified -[profile update]-> Active

AccountService coordinates the credential store, the token helpers, and the
mailer. It is cheap to build, so routes construct one per request from the
process-scoped collaborators on app.state:

    service = AccountService(UserKind.student, store, mailer, settings)
    user = service.register(payload)

Every operation either returns its result or raises a core.errors.AppError
subclass at the point the problem is detected. Mail transport failures
propagate as MailDeliveryFailed to the centralized handler.

Payloads are plain mappings with snake_case keys; the HTTP layer converts
the camelCase wire names before calling in.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from urllib.parse import urlencode

from auth.models import (
    EXPERIENCE_LEVELS,
    GENDERS,
    PROFILE_FIELDS,
    ActionToken,
    Role,
    TokenPurpose,
    User,
    UserKind,
)
from auth.store import Page, UserStore
from auth.tokens import (
    authenticate_user,
    create_client_token,
    create_session_token,
    generate_action_token,
    hash_password,
)
from core.config import Settings
from core.errors import (
    AlreadyVerified,
    DuplicateEmail,
    EmailNotFound,
    EmailNotVerified,
    EmptyPatch,
    Forbidden,
    InvalidCredentials,
    MissingFields,
    TokenNotFound,
    UserNotFound,
    ValidationError,
)
from core.validation import FieldSpec, clean_fields, require_choice, require_email, require_present, require_strong_password
from mail.sender import Mailer

logger = logging.getLogger("degenius.accounts")

# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

_REGISTER_FIELDS = (
    FieldSpec("first_name", "first name", required=True),
    FieldSpec("middle_name", "middle name"),
    FieldSpec("last_name", "last name", required=True),
    FieldSpec("email", "email", required=True, free_text=False),
    FieldSpec("phone_number", "phone number", required=True, free_text=False),
    FieldSpec("address", "address", required=True),
    FieldSpec("country_of_residence", "country of residence", required=True),
    FieldSpec("state_of_residence", "state of residence", required=True),
    FieldSpec("gender", "gender", required=True, free_text=False),
    FieldSpec("dob", "date of birth", required=True, free_text=False),
)

_PROFILE_SPECS = {
    "first_name": FieldSpec("first_name", "first name"),
    "middle_name": FieldSpec("middle_name", "middle name"),
    "last_name": FieldSpec("last_name", "last name"),
    "phone_number": FieldSpec("phone_number", "phone number", free_text=False),
    "gender": FieldSpec("gender", "gender", free_text=False),
    "dob": FieldSpec("dob", "date of birth", free_text=False),
    "address": FieldSpec("address", "address"),
    "country_of_residence": FieldSpec("country_of_residence", "country of residence"),
    "state_of_residence": FieldSpec("state_of_residence", "state of residence"),
    "preferred_training_days": FieldSpec("preferred_training_days", "preferred training days"),
    "info_source": FieldSpec("info_source", "info source"),
    "nok_name": FieldSpec("nok_name", "next of kin name"),
    "nok_relationship": FieldSpec("nok_relationship", "next of kin relationship"),
    "nok_address": FieldSpec("nok_address", "next of kin address"),
    "nok_phone_number": FieldSpec("nok_phone_number", "next of kin phone number", free_text=False),
    "level_of_forex_experience": FieldSpec("level_of_forex_experience", "level of forex experience", free_text=False),
    "highest_education_attained": FieldSpec("highest_education_attained", "highest education attained"),
    "risk_appetite": FieldSpec("risk_appetite", "risk appetite"),
    "referral_name": FieldSpec("referral_name", "referral name"),
    "legal_knowledge_and_acceptance": FieldSpec("legal_knowledge_and_acceptance", "legal knowledge and acceptance"),
    "questions_and_comments": FieldSpec("questions_and_comments", "questions and comments"),
}

# Students fill in the full onboarding profile; investors keep contact,
# residence and next-of-kin details plus their risk appetite.
_EDITABLE_FIELDS = {
    UserKind.student: frozenset(PROFILE_FIELDS),
    UserKind.investor: frozenset(
        {
            "first_name",
            "middle_name",
            "last_name",
            "phone_number",
            "gender",
            "dob",
            "address",
            "country_of_residence",
            "state_of_residence",
            "info_source",
            "nok_name",
            "nok_relationship",
            "nok_address",
            "nok_phone_number",
            "risk_appetite",
            "referral_name",
        }
    ),
}

# Fields that may be edited but never blanked.
_NON_BLANK = frozenset({"first_name", "last_name", "phone_number", "gender", "dob"})


@dataclass
class LoginResult:
    """A verified user plus the two session artifacts handed to the client."""

    user: User
    token: str
    client_token: str


def _parse_dob(value: str) -> str:
    try:
        return date.fromisoformat(value[:10]).isoformat()
    except ValueError as exc:
        raise ValidationError("Invalid date of birth. Use YYYY-MM-DD") from exc


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AccountService:
    """Register, verify, log in, recover, and maintain accounts of one kind."""

    def __init__(self, kind: UserKind, store: UserStore, mailer: Mailer, settings: Settings) -> None:
        self.kind = kind
        self.store = store
        self.mailer = mailer
        self.settings = settings

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, payload: Mapping[str, object]) -> User:
        """Create an unverified user and email them a verification link.

        Nothing is persisted unless every field passes validation. The user
        is not logged in; they must verify first.
        """
        password = payload.get("password")
        confirm_password = payload.get("confirm_password")
        if not password or not confirm_password:
            raise MissingFields()
        fields = clean_fields(payload, _REGISTER_FIELDS)

        email = require_email(fields["email"])
        require_strong_password(str(password), str(confirm_password))
        gender = require_choice(fields["gender"], GENDERS, "gender")
        dob = _parse_dob(fields["dob"])

        if self.store.get_by_email(self.kind, email) is not None:
            raise DuplicateEmail()

        user = User(
            kind=self.kind,
            role=Role(self.kind.value),
            first_name=fields["first_name"],
            middle_name=fields.get("middle_name") or None,
            last_name=fields["last_name"],
            email=email,
            hashed_password=hash_password(str(password)),
            phone_number=fields["phone_number"],
            address=fields["address"],
            country_of_residence=fields["country_of_residence"],
            state_of_residence=fields["state_of_residence"],
            gender=gender,
            dob=dob,
        )
        user = self.store.create_user(user)
        logger.info("Registered %s id=%s", self.kind.value, user.id)

        token = self._issue_token(user, TokenPurpose.verify_email)
        self.mailer.send_verification(user.email, user.first_name, self.verification_link(token))
        return user

    def verify_email(self, user_id: str, token: str) -> User:
        """Mark the user verified and consume the token."""
        found = self.store.get_action_token(self.kind, user_id, token, TokenPurpose.verify_email)
        if found is None:
            raise TokenNotFound("Token can not be found")
        user = self.store.update_user(self.kind, user_id, is_verified=True)
        self.store.delete_action_token(self.kind, user_id, token)
        logger.info("Verified email for %s id=%s", self.kind.value, user_id)
        return user

    def resend_verification(self, email: str | None) -> None:
        """Re-send the verification link, reusing the outstanding token if it is still live."""
        email = require_email(email)
        user = self.store.get_by_email(self.kind, email)
        if user is None:
            raise UserNotFound()
        if user.is_verified:
            raise AlreadyVerified()
        token = self._outstanding_or_new_token(user, TokenPurpose.verify_email)
        self.mailer.send_verification(user.email, user.first_name, self.verification_link(token))

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str | None, password: str | None) -> LoginResult:
        """Authenticate and issue session tokens.

        Unknown email and wrong password fail identically. A correct password
        on an unverified account re-sends the verification email and fails
        with EmailNotVerified -- no session is issued.
        """
        require_present(email, password)
        user = authenticate_user(self.store, self.kind, str(email).strip(), str(password))
        if user is None:
            raise InvalidCredentials()

        if not user.is_verified:
            token = self._outstanding_or_new_token(user, TokenPurpose.verify_email)
            self.mailer.send_verification(user.email, user.first_name, self.verification_link(token))
            logger.info("Login attempt by unverified %s id=%s; verification re-sent", self.kind.value, user.id)
            raise EmailNotVerified()

        return LoginResult(
            user=user,
            token=create_session_token(user),
            client_token=create_client_token(user),
        )

    # ------------------------------------------------------------------
    # Password recovery
    # ------------------------------------------------------------------

    def forgot_password(self, email: str | None) -> None:
        """Email a reset link. Succeeds only once the mail relay accepts the message."""
        email = require_email(email)
        user = self.store.get_by_email(self.kind, email)
        if user is None:
            raise EmailNotFound()
        token = self._issue_token(user, TokenPurpose.reset_password)
        self.mailer.send_password_reset(user.email, user.first_name, self.reset_link(token))

    def reset_password(self, user_id: str, token: str, password: str | None, confirm_password: str | None) -> None:
        """Replace the password and consume the token."""
        require_present(password, confirm_password)
        require_strong_password(str(password), str(confirm_password))

        found = self.store.get_action_token(self.kind, user_id, token, TokenPurpose.reset_password)
        if found is None:
            raise TokenNotFound()
        if self.store.get_by_id(self.kind, found.user_id) is None:
            raise UserNotFound()

        self.store.update_user(self.kind, found.user_id, hashed_password=hash_password(str(password)))
        self.store.delete_action_token(self.kind, found.user_id, token)
        logger.info("Password reset for %s id=%s", self.kind.value, found.user_id)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_self(self, session_user_id: str, target_id: str) -> User:
        if session_user_id != target_id:
            raise Forbidden("Not the authorized user")
        return self.get_single(target_id)

    def get_single(self, user_id: str) -> User:
        user = self.store.get_by_id(self.kind, user_id)
        if user is None:
            raise UserNotFound(f"{self.kind.value.capitalize()} not found")
        return user

    def update_profile(self, session_user_id: str, target_id: str, patch: Mapping[str, object]) -> User:
        """Apply a profile patch for the session's own account and mark it updated.

        Only fields editable for this kind are accepted. Free-text fields are
        trimmed and checked for forbidden characters; enum fields must hold a
        known value.
        """
        if session_user_id != target_id:
            raise Forbidden("Not the authorized user")

        supplied = {k: v for k, v in patch.items() if v is not None}
        not_editable = sorted(set(supplied) - _EDITABLE_FIELDS[self.kind])
        if not_editable:
            raise ValidationError(f"Fields not editable for {self.kind.path}: {', '.join(not_editable)}")
        if not supplied:
            raise EmptyPatch()

        fields = clean_fields(supplied, (_PROFILE_SPECS[name] for name in supplied))
        for name in fields.keys() & _NON_BLANK:
            if not fields[name]:
                raise MissingFields(f"{_PROFILE_SPECS[name].label.capitalize()} can not be empty")
        if "gender" in fields:
            require_choice(fields["gender"], GENDERS, "gender")
        if fields.get("level_of_forex_experience"):
            require_choice(fields["level_of_forex_experience"], EXPERIENCE_LEVELS, "level of forex experience")
        if "dob" in fields:
            fields["dob"] = _parse_dob(fields["dob"])

        user = self.store.update_user(self.kind, target_id, is_updated=True, **fields)
        logger.info("Profile updated for %s id=%s (%s)", self.kind.value, target_id, ", ".join(sorted(fields)))
        return user

    # ------------------------------------------------------------------
    # Directory (admin listing, public search)
    # ------------------------------------------------------------------

    def list_users(self, page: int | None = None, limit: int | None = None) -> Page:
        page_size = limit if limit is not None else self.settings.default_page_size
        return self.store.list_users(self.kind, Role(self.kind.value), page=page, page_size=page_size)

    def search(self, query: str | None) -> list[User]:
        if query is None or not query.strip():
            raise ValidationError("Search query is required")
        return self.store.search_users(self.kind, query)

    # ------------------------------------------------------------------
    # Links and tokens
    # ------------------------------------------------------------------

    def verification_link(self, token: ActionToken) -> str:
        return self._link("verify-email", token)

    def reset_link(self, token: ActionToken) -> str:
        return self._link("resetPassword", token)

    def _link(self, action: str, token: ActionToken) -> str:
        base = self.settings.frontend_url.rstrip("/")
        query = urlencode({"userId": token.user_id, "token": token.token})
        return f"{base}/{self.kind.path}/{action}/?{query}"

    def _issue_token(self, user: User, purpose: TokenPurpose) -> ActionToken:
        token = ActionToken(kind=self.kind, user_id=user.id, token=generate_action_token(), purpose=purpose)
        return self.store.save_action_token(token)

    def _outstanding_or_new_token(self, user: User, purpose: TokenPurpose) -> ActionToken:
        existing = self.store.get_outstanding_token(self.kind, user.id, purpose)
        if existing is not None:
            return existing
        return self._issue_token(user, purpose)
