"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py, which stores it on app.state so SlowAPIMiddleware
can locate it. default_limits applies the configured throttle to every route;
the auth provider layers its own stricter, database-backed limit on sign-in
and sign-up (auth/rate_limit.py).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.throttle_rule],
    storage_uri="memory://",
    enabled=_settings.throttle_enabled,
)
