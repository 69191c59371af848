"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

Usage in routes:
    from fastapi import Request
    from safetymap.core.rate_limit import limiter

    @router.post("/some-write-endpoint")
    @limiter.limit(settings.submit_rate_limit)
    async def my_endpoint(request: Request, payload: MyRequest):
        ...

Wired into the app in main.py (app.state.limiter + RateLimitExceeded handler).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Anonymous identities are free to mint, so keying by user ID would be
# trivially bypassed; key writes by client IP instead.
limiter = Limiter(key_func=get_remote_address)
