"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two places a session token can arrive, checked in priority order:
  1. "token" cookie -- set by the login response (httpOnly).
  2. Authorization: Bearer <token> header -- for clients that cannot use the
     cookie and send the client token from the login body instead.

get_session() returns the verified claims as a Session. Missing credentials
raise SessionMissing; a bad or expired token raises SessionInvalid or
SessionExpired, so the client can tell "log in" from "log in again".

require_admin() wraps get_session() and consults the authorization gate.
Both a non-admin and an unknown principal get the same 403.

Layer rule: no imports from accounts/, mail/, or outreach/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from auth.authorization import authorize
from auth.tokens import SESSION_COOKIE, decode_session_token
from core.errors import Forbidden, SessionMissing


@dataclass(frozen=True)
class Session:
    """The authenticated principal attached to a request."""

    user_id: str
    email: str | None = None


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_session(request: Request) -> Session:
    """Require a valid session token. Raises an AuthError subclass otherwise.

    Use as a FastAPI dependency:
        @router.get("/getSelf/{user_id}")
        def route(session: Session = Depends(get_session)): ...
    """
    token = _extract_token(request)
    if token is None:
        raise SessionMissing()
    claims = decode_session_token(token)
    return Session(user_id=str(claims["user_id"]), email=claims.get("email"))


def require_admin(request: Request, session: Session = Depends(get_session)) -> Session:
    """Require a session whose principal has the admin role. Raises Forbidden otherwise."""
    decision = authorize(request.app.state.user_store, session.user_id)
    if not decision.allowed:
        raise Forbidden()
    return session
