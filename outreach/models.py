"""
outreach/models.py -- Dataclasses for public outreach submissions, and the
form cleaners that build them from raw request payloads.

Cleaners apply the same rules as account registration (core.validation):
trimmed text, no forbidden characters in free text, email shape.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from core.errors import ValidationError
from core.validation import FieldSpec, clean_fields, require_email


@dataclass
class ContactMessage:
    name: str
    email: str
    message: str
    phone_number: str
    id: int | None = None
    created_at: str | None = None


@dataclass
class Feedback:
    name: str
    email: str
    rating: int = 1  # 1..5
    message: str = ""
    id: int | None = None
    created_at: str | None = None


@dataclass
class EmailSubscription:
    email: str
    id: int | None = None
    created_at: str | None = None


_CONTACT_FIELDS = (
    FieldSpec("name", "name", required=True),
    FieldSpec("email", "email", required=True, free_text=False),
    FieldSpec("message", "message", required=True),
    FieldSpec("phone_number", "phone number", required=True, free_text=False),
)

_FEEDBACK_FIELDS = (
    FieldSpec("name", "name", required=True),
    FieldSpec("email", "email", required=True, free_text=False),
    FieldSpec("rating", "rating", required=True, free_text=False),
    FieldSpec("message", "message"),
)


def clean_contact(payload: Mapping[str, object]) -> ContactMessage:
    fields = clean_fields(payload, _CONTACT_FIELDS)
    return ContactMessage(
        name=fields["name"],
        email=require_email(fields["email"]),
        message=fields["message"],
        phone_number=fields["phone_number"],
    )


def clean_feedback(payload: Mapping[str, object]) -> Feedback:
    fields = clean_fields(payload, _FEEDBACK_FIELDS)
    try:
        rating = int(fields["rating"])
    except ValueError as exc:
        raise ValidationError("Rating must be a whole number from 1 to 5") from exc
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number from 1 to 5")
    return Feedback(
        name=fields["name"],
        email=require_email(fields["email"]),
        rating=rating,
        message=fields.get("message", ""),
    )


def clean_subscription(payload: Mapping[str, object]) -> EmailSubscription:
    return EmailSubscription(email=require_email(payload.get("email")))
