"""
core/errors.py -- Error taxonomy for the account lifecycle.

Every business failure is an AppError carrying a machine-usable code, the
HTTP status it maps to, and a human message. The service layer raises these
at the point of detection; api/main.py renders them into the standard
failure envelope {success: false, status, code, error}.

DependencyError covers collaborators that failed underneath us (mail
transport). Those are logged with their cause by the centralized handler.

Layer rule: core/ is the kernel -- no imports from other project packages.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for all expected, client-reportable failures."""

    code = "app_error"
    status_code = 500
    default_message = "Something happened"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400 -- malformed or forbidden input
# ---------------------------------------------------------------------------


class ValidationError(AppError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid input."


class MissingFields(ValidationError):
    code = "missing_fields"
    default_message = "Please fill all mandatory fields"


class ForbiddenCharacters(ValidationError):
    code = "forbidden_characters"

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Invalid character in {label} field")


class InvalidEmail(ValidationError):
    code = "invalid_email"
    default_message = "Invalid input for email"


class WeakPassword(ValidationError):
    code = "weak_password"
    default_message = (
        "Password must contain at least 1 special character, 1 number, 1 lowercase letter, "
        "and 1 uppercase letter. Also it must be minimum of 8 characters and maximum of 20 characters"
    )


class PasswordMismatch(ValidationError):
    code = "password_mismatch"
    default_message = "Password and confirm password do not match"


class EmptyPatch(ValidationError):
    code = "no_changes"
    default_message = "No fields to update."


# ---------------------------------------------------------------------------
# 400/401/403 -- authentication and authorization
# ---------------------------------------------------------------------------


class AuthError(AppError):
    code = "auth_error"
    status_code = 401
    default_message = "Authentication required."


class InvalidCredentials(AuthError):
    # Deliberately the same message for unknown email and wrong password.
    code = "invalid_credentials"
    status_code = 400
    default_message = "Invalid credentials"


class SessionMissing(AuthError):
    code = "session_missing"
    default_message = "Please login to continue"


class SessionInvalid(AuthError):
    code = "session_invalid"
    default_message = "Invalid token"


class SessionExpired(AuthError):
    code = "session_expired"
    default_message = "Session expired. Please login again"


class EmailNotVerified(AuthError):
    code = "email_not_verified"
    status_code = 403
    default_message = "Please use the mail sent to your email address to verify your email"


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Unauthorized"


# ---------------------------------------------------------------------------
# 404 -- missing resources
# ---------------------------------------------------------------------------


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404
    default_message = "Not found."


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


class TokenNotFound(NotFoundError):
    code = "token_not_found"
    default_message = "Token not found"


class EmailNotFound(NotFoundError):
    code = "email_not_found"
    default_message = "Email not found"


class PageOutOfRange(NotFoundError):
    code = "page_out_of_range"
    default_message = "Page limit exceeded"


# ---------------------------------------------------------------------------
# 409 -- state conflicts
# ---------------------------------------------------------------------------


class ConflictError(AppError):
    code = "conflict"
    status_code = 409
    default_message = "Resource conflict."


class DuplicateEmail(ConflictError):
    code = "duplicate_email"
    default_message = "Email already exist"


class AlreadyVerified(ConflictError):
    code = "already_verified"
    default_message = "User already verified"


class AlreadySubscribed(ConflictError):
    code = "already_subscribed"
    default_message = "Email already subscribed"


# ---------------------------------------------------------------------------
# 502 -- collaborator failures
# ---------------------------------------------------------------------------


class DependencyError(AppError):
    code = "dependency_error"
    status_code = 502
    default_message = "An upstream service failed."


class MailDeliveryFailed(DependencyError):
    code = "mail_delivery_failed"
    default_message = "Unable to send email. Please try again"


class MailAuthenticationFailed(MailDeliveryFailed):
    code = "mail_auth_failed"
    status_code = 500
    default_message = "Authentication failed. Please check your email credentials."
