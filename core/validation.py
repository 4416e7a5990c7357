"""
core/validation.py -- Reusable field validators for account and outreach input.

One capability set applied uniformly by register, update, reset, and the
outreach forms:

  clean_fields()           -- required-ness, trimming, forbidden-character check
  require_email()          -- local@domain.tld shape
  require_strong_password()-- 8-20 chars, upper, lower, digit, symbol
  require_choice()         -- enum membership for gender / experience level

Each validator raises a core.errors.ValidationError subclass on the first
failure, so the caller never sees partially validated data.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from core.errors import ForbiddenCharacters, InvalidEmail, MissingFields, PasswordMismatch, ValidationError, WeakPassword

FORBIDDEN_CHARS_RE = re.compile(r"[|!{}()&=\[\]<>]")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
STRONG_PASSWORD_RE = re.compile(
    r"^(?=.*[!@#$%^&*()_+{}\[\]:;<>,.?~\\/-])(?=.*[A-Z])(?=.*[a-z])(?=.*[0-9]).{8,20}$"
)


@dataclass(frozen=True)
class FieldSpec:
    """How one input field is cleaned.

    name:      key in the incoming mapping
    label:     human name used in error messages ("first name")
    required:  missing or blank values raise MissingFields
    free_text: trimmed value is checked against FORBIDDEN_CHARS_RE
    """

    name: str
    label: str
    required: bool = False
    free_text: bool = True


def has_forbidden_chars(value: str) -> bool:
    return bool(FORBIDDEN_CHARS_RE.search(value))


def clean_fields(data: Mapping[str, object], specs: Iterable[FieldSpec]) -> dict[str, str]:
    """Validate and trim the fields named by specs.

    Returns a dict containing only the fields that were supplied (required
    ones always are, or MissingFields is raised). Empty optional strings are
    kept as "" so callers can distinguish "cleared" from "absent".

    Required-ness is checked for every field before any forbidden-character
    check, so a payload with both problems reports the missing field first.
    """
    specs = list(specs)
    missing = [s for s in specs if s.required and not _present(data.get(s.name))]
    if missing:
        raise MissingFields()

    cleaned: dict[str, str] = {}
    for spec in specs:
        raw = data.get(spec.name)
        if raw is None:
            continue
        value = str(raw).strip()
        if spec.free_text and value and has_forbidden_chars(value):
            raise ForbiddenCharacters(spec.label)
        cleaned[spec.name] = value
    return cleaned


def require_present(*values: object, message: str = "All fields are required") -> None:
    if not all(_present(v) for v in values):
        raise MissingFields(message)


def require_email(value: str | None) -> str:
    """Return the trimmed email or raise InvalidEmail."""
    if not _present(value):
        raise MissingFields("Email is required")
    email = str(value).strip()
    if not EMAIL_RE.fullmatch(email):
        raise InvalidEmail()
    return email


def require_strong_password(password: str, confirm_password: str) -> None:
    """Strength first, then confirmation -- same order the forms report them."""
    if not STRONG_PASSWORD_RE.fullmatch(password):
        raise WeakPassword()
    if password != confirm_password:
        raise PasswordMismatch()


def require_choice(value: str, choices: Iterable[str], label: str) -> str:
    allowed = list(choices)
    if value not in allowed:
        raise ValidationError(f"Invalid value for {label}. Expected one of: {', '.join(allowed)}")
    return value


def _present(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
