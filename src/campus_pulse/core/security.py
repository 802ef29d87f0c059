"""Bearer token helpers.

Tokens are issued by the auth collaborator with the shared secret; the
``sub`` claim carries the user id.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from campus_pulse.core.settings import settings


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Return a signed JWT whose subject is ``user_id``."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the user id carried by ``token``.

    Raises:
        JWTError: If the token is malformed, expired, or carries no subject.
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise JWTError("Token has no subject")
    return subject
