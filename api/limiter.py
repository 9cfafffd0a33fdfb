"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the login routes in
api/routes/v1/auth.py and web/routes.py (to apply @limiter.limit()).

The per-route decorators and SlowAPIMiddleware must share one instance;
a limiter instantiated per module would keep its own counters and never
trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Limit string for password login, e.g. "10/minute".
LOGIN_RATE_LIMIT = get_settings().login_rate_limit
