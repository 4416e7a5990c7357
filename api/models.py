"""
API request and response models for the Degenius REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
outreach/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire names are camelCase (firstName, countryOfResidence, DOB) to match the
existing frontend. Request fields are all optional strings: presence and
shape are checked by the service so a missing field produces the standard
{success: false, status: 400, error} envelope instead of a 422 schema dump.

Every response carries {success, status} plus either message or error.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models -- accounts
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register."""

    model_config = _CAMEL

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    country_of_residence: Optional[str] = None
    state_of_residence: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = Field(default=None, alias="DOB")


class LoginRequest(BaseModel):
    model_config = _CAMEL

    email: Optional[str] = None
    password: Optional[str] = None


class EmailRequest(BaseModel):
    """Body for POST /forgotPassword and POST /resendEmailVerification."""

    model_config = _CAMEL

    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    model_config = _CAMEL

    password: Optional[str] = None
    confirm_password: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    """Body for POST /update/{id}. Only supplied (non-null) fields are applied."""

    model_config = _CAMEL

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = Field(default=None, alias="DOB")
    address: Optional[str] = None
    country_of_residence: Optional[str] = None
    state_of_residence: Optional[str] = None
    preferred_training_days: Optional[str] = None
    info_source: Optional[str] = None
    nok_name: Optional[str] = None
    nok_relationship: Optional[str] = None
    nok_address: Optional[str] = None
    nok_phone_number: Optional[str] = None
    level_of_forex_experience: Optional[str] = None
    highest_education_attained: Optional[str] = None
    risk_appetite: Optional[str] = None
    referral_name: Optional[str] = None
    legal_knowledge_and_acceptance: Optional[str] = None
    questions_and_comments: Optional[str] = None


# ---------------------------------------------------------------------------
# Request models -- outreach
# ---------------------------------------------------------------------------


class ContactRequest(BaseModel):
    model_config = _CAMEL

    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    phone_number: Optional[str] = None


class FeedbackRequest(BaseModel):
    model_config = _CAMEL

    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    rating: Optional[Union[int, str]] = None


class SubscriptionRequest(BaseModel):
    model_config = _CAMEL

    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. There is no password field to leak."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    kind: str
    role: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    email: str
    is_verified: bool
    is_updated: bool
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = Field(default=None, alias="DOB")
    address: Optional[str] = None
    country_of_residence: Optional[str] = None
    state_of_residence: Optional[str] = None
    preferred_training_days: Optional[str] = None
    info_source: Optional[str] = None
    nok_name: Optional[str] = None
    nok_relationship: Optional[str] = None
    nok_address: Optional[str] = None
    nok_phone_number: Optional[str] = None
    level_of_forex_experience: Optional[str] = None
    highest_education_attained: Optional[str] = None
    risk_appetite: Optional[str] = None
    referral_name: Optional[str] = None
    legal_knowledge_and_acceptance: Optional[str] = None
    questions_and_comments: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method: the domain-to-wire mapping lives beside the wire model."""
        return cls.model_validate(user.public_dict())

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ErrorResponse(BaseModel):
    """Failure envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    status: int
    code: str
    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
