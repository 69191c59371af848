"""
security.py — Anonymous identity + JWT utilities.

Uses python-jose for JWT creation / verification. Reporters are anonymous:
POST /auth/anonymous mints a random author ID and returns a token whose
*sub* claim is that ID. The token is the only thing that proves ownership
when a report is deleted.

Configuration is read from safetymap.core.config.settings so all secrets
live in environment variables / .env files, never in code.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from safetymap.core.config import settings


def new_anonymous_id() -> str:
    """Return a fresh opaque author ID (32 hex chars)."""
    return uuid.uuid4().hex


# ── JWT ───────────────────────────────────────────────────────────────────────

def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT.

    Args:
        subject:       The anonymous author ID.
        expires_delta: Custom TTL; defaults to settings.jwt_expiry_hours.

    Returns:
        Encoded JWT string.
    """
    delta = expires_delta or timedelta(hours=settings.jwt_expiry_hours)
    expire = datetime.now(tz=timezone.utc) + delta
    payload = {"sub": subject, "exp": expire, "anon": True}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[str]:
    """
    Decode and validate a JWT.

    Returns the *sub* claim (author ID) on success, or None if the token
    is missing, expired, or otherwise invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload.get("sub")
    except JWTError:
        return None
