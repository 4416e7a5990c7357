"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()). The limit decorator goes
below the @router decorator so the router registers the wrapped handler.

A single shared instance means every route shares the same in-memory counter
store; separate instances per module would never trigger.

Per-route limit strings come from Settings so deployments can tune them
without code changes. They are read through callables so the values are
resolved when the limit is evaluated, not frozen at import.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_limit() -> str:
    return get_settings().login_rate_limit


def register_limit() -> str:
    return get_settings().register_rate_limit


def email_limit() -> str:
    return get_settings().email_rate_limit
