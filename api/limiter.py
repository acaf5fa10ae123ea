"""
api/limiter.py -- The slowapi limiter shared by the app and the auth routes.

api/main.py mounts it as middleware; api/routes/auth.py applies the login
limit with @limiter.limit(). Counters live in process memory, keyed by
client IP, so they reset on restart and are not shared between workers.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit string for POST /login, read from LOGIN_RATE_LIMIT at request time."""
    return get_settings().login_rate_limit
