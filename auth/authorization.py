"""
auth/authorization.py -- Role gate for admin-scoped operations.

authorize() answers one question: may the principal behind this session act
as an admin? The principal is looked up by id across both user kinds, so an
admin registered as an investor is recognized on student routes and vice
versa.

DENY and UNKNOWN_PRINCIPAL are separate values only so the log says which
happened. Callers must give both the same outcome (see require_admin).
"""

from __future__ import annotations

import logging
from enum import Enum

from auth.models import Role
from auth.store import UserStore

logger = logging.getLogger("degenius.auth.authorization")


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    UNKNOWN_PRINCIPAL = "unknown_principal"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


def authorize(store: UserStore, session_user_id: str) -> Decision:
    """Return ALLOW only when the acting user exists and has the admin role."""
    principal = store.get_principal(session_user_id)
    if principal is None:
        logger.warning("Admin check for unknown principal id=%s", session_user_id)
        return Decision.UNKNOWN_PRINCIPAL
    if principal.role is not Role.admin:
        logger.info("Admin check denied for user id=%s role=%s", principal.id, principal.role.value)
        return Decision.DENY
    return Decision.ALLOW
