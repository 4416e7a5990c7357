"""
auth/models.py -- Domain dataclasses for account and token entities.

Pattern: Data class (pure data container, minimal logic). Stores and the
account service do the work; these only own the domain shape.

Layer rule: no imports from api/, accounts/, mail/, or outreach/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


class UserKind(str, Enum):
    """Which principal collection a user belongs to."""

    student = "student"
    investor = "investor"

    @property
    def path(self) -> str:
        """Frontend/API path segment: /student/... and /investors/..."""
        return "student" if self is UserKind.student else "investors"


class Role(str, Enum):
    student = "student"
    investor = "investor"
    admin = "admin"


class TokenPurpose(str, Enum):
    verify_email = "verify_email"
    reset_password = "reset_password"


GENDERS = ("Male", "Female")
EXPERIENCE_LEVELS = ("Beginner", "Intermediate", "Advanced")

# Profile attributes a user may patch through /update/{id}. Identity,
# credentials and verification flags are deliberately absent.
PROFILE_FIELDS = (
    "first_name",
    "middle_name",
    "last_name",
    "phone_number",
    "gender",
    "dob",
    "address",
    "country_of_residence",
    "state_of_residence",
    "preferred_training_days",
    "info_source",
    "nok_name",
    "nok_relationship",
    "nok_address",
    "nok_phone_number",
    "level_of_forex_experience",
    "highest_education_attained",
    "risk_appetite",
    "referral_name",
    "legal_knowledge_and_acceptance",
    "questions_and_comments",
)


@dataclass
class User:
    """A registered student or investor.

    hashed_password is a bcrypt hash and must never leave the service layer.
    Use public_dict() (or the API response models) for anything that gets
    serialized.

    role defaults to the user's kind; only the admin CLI assigns "admin".
    """

    kind: UserKind
    first_name: str
    last_name: str
    email: str
    hashed_password: str
    role: Role
    id: str | None = None
    middle_name: str | None = None
    is_verified: bool = False
    is_updated: bool = False
    phone_number: str | None = None
    gender: str | None = None
    dob: str | None = None
    address: str | None = None
    country_of_residence: str | None = None
    state_of_residence: str | None = None
    preferred_training_days: str | None = None
    info_source: str | None = None
    nok_name: str | None = None
    nok_relationship: str | None = None
    nok_address: str | None = None
    nok_phone_number: str | None = None
    level_of_forex_experience: str | None = None
    highest_education_attained: str | None = None
    risk_appetite: str | None = None
    referral_name: str | None = None
    legal_knowledge_and_acceptance: str | None = None
    questions_and_comments: str | None = None
    created_at: str | None = None

    def public_dict(self) -> dict:
        """Every field except the password hash, enums as plain strings."""
        data = asdict(self)
        data.pop("hashed_password", None)
        data["kind"] = self.kind.value
        data["role"] = self.role.value
        return data


@dataclass
class ActionToken:
    """A short-lived credential proving control of an email address.

    The raw token is sent by email and stored as-is: it only unlocks one
    action for one user and dies after the configured TTL (1800s by default).
    """

    kind: UserKind
    user_id: str
    token: str
    purpose: TokenPurpose
    created_at: str | None = None
