"""
auth/rate_limit.py -- Database-backed fixed-window limiter for auth endpoints.

The global slowapi throttle (api/limiter.py) keeps its counters in process
memory. Sign-in and sign-up get a stricter limit whose counters live in the
rate_limits table so they survive restarts and are shared by every worker
pointed at the same database.

Window semantics: the first request for a key opens a window of
window_seconds. Up to max_requests are allowed inside it; the next request
after the window closes resets the counter to 1.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import new_id, rate_limits

logger = logging.getLogger("authstarter.auth")


class AuthRateLimiter:
    """Fixed-window request counter keyed by an arbitrary string (e.g. "ip|path")."""

    def __init__(self, engine: Engine, window_seconds: int, max_requests: int) -> None:
        self.engine = engine
        self.window_ms = window_seconds * 1000
        self.max_requests = max_requests

    def hit(self, key: str, now_ms: int | None = None) -> float | None:
        """Record one request for key.

        Returns None if the request is allowed, otherwise the number of
        seconds until the current window closes (for Retry-After).
        """
        now = now_ms if now_ms is not None else int(time.time() * 1000)
        try:
            return self._hit(key, now)
        except IntegrityError:
            # Two concurrent first hits for the same key; the loser is let through.
            return None

    def _hit(self, key: str, now: int) -> float | None:
        with self.engine.begin() as conn:
            row = conn.execute(rate_limits.select().where(rate_limits.c.key == key)).fetchone()
            if row is None:
                conn.execute(rate_limits.insert().values(id=new_id(), key=key, count=1, last_request=now))
                return None

            if now - row.last_request >= self.window_ms:
                conn.execute(rate_limits.update().where(rate_limits.c.key == key).values(count=1, last_request=now))
                return None

            if row.count >= self.max_requests:
                retry_after = (row.last_request + self.window_ms - now) / 1000
                logger.warning("Auth rate limit exceeded for %s", key)
                return max(retry_after, 1.0)

            conn.execute(rate_limits.update().where(rate_limits.c.key == key).values(count=row.count + 1))
        return None
