"""
auth/tokens.py -- Password hashing, action tokens, session JWTs, and cookie helpers.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper), cost factor from
       Settings.bcrypt_rounds (10 by default). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  Action tokens: two secrets.token_hex(32) blocks concatenated -- 512 bits of
       entropy as 128 hex chars. They are single-purpose and short-lived
       (see UserStore), so they are stored as issued.

  Session tokens: python-jose with HS256. The cookie token carries user_id,
       email and kind. A second client token carries user_id and a random
       nonce for clients that cannot read the HTTP-only cookie (cross-site
       embedding); both are accepted as Bearer credentials.
       decode_session_token() raises SessionExpired or SessionInvalid so the
       caller can report the two distinctly.

  SECRET_KEY: sourced from core.config.get_settings(), which validates it at
       startup.

Layer rule: no imports from api/, accounts/, mail/, or outreach/. Import
from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings
from core.errors import SessionExpired, SessionInvalid

if TYPE_CHECKING:
    from auth.models import User, UserKind
    from auth.store import UserStore

logger = logging.getLogger("degenius.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION_COOKIE = "token"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Registration caps passwords at 20 characters, well below bcrypt's
    72-byte truncation point.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store -- treat as a failed match.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("degenius_timing_dummy")


def authenticate_user(store: UserStore, kind: UserKind, email: str, password: str) -> User | None:
    """Return the user for a correct email/password pair, None otherwise.

    Always runs bcrypt whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash

    Verification state is not checked here; the caller decides what an
    unverified but correctly authenticated user gets.
    """
    user = store.get_by_email(kind, email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Action tokens
# ---------------------------------------------------------------------------


def generate_action_token() -> str:
    """Two 32-byte hex blocks: 128 chars, 512 bits of entropy."""
    return secrets.token_hex(32) + secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def _expiry(expire_seconds: int) -> tuple[datetime, datetime]:
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    issued = datetime.now(timezone.utc)
    return issued, issued + timedelta(seconds=duration)


def create_session_token(user: User, expire_seconds: int = 0) -> str:
    """Encode the cookie session token: {user_id, email, kind}.

    Args:
        user:           The authenticated, verified user.
        expire_seconds: Session duration in seconds. If 0 (default), uses
                        Settings.session_expire_seconds (15 days).
    """
    issued, expire = _expiry(expire_seconds)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "kind": user.kind.value,
        "iat": issued,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def create_client_token(user: User, expire_seconds: int = 0) -> str:
    """Encode the client-visible token: {user_id, nonce}.

    Contains no email so it is safe to keep in browser storage.
    """
    issued, expire = _expiry(expire_seconds)
    payload = {
        "user_id": user.id,
        "nonce": secrets.token_urlsafe(16),
        "iat": issued,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """Verify signature and expiry; return the claims.

    Raises:
        SessionExpired: the signature is valid but exp is in the past.
        SessionInvalid: anything else -- bad signature, malformed token,
                        or a payload without user_id and email/nonce.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise SessionExpired() from exc
    except JWTError as exc:
        raise SessionInvalid() from exc
    if "user_id" not in payload or not ("email" in payload or "nonce" in payload):
        raise SessionInvalid()
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite: from Settings.cookie_samesite; "none" allows the cross-site
        frontend to send it on credentialed requests.
    secure: only sent over HTTPS when SECURE_COOKIES=true. Browsers reject
        SameSite=None without Secure, so production sets both.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite=_settings.cookie_samesite,
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_session_cookie(response) -> None:
    """Overwrite the session cookie with an empty value that expires immediately."""
    response.set_cookie(
        SESSION_COOKIE,
        value="",
        httponly=True,
        samesite=_settings.cookie_samesite,
        secure=_settings.secure_cookies,
        max_age=0,
    )
