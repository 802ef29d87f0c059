"""Shared API dependencies for authentication and collaborators."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from campus_pulse.core.security import decode_access_token
from campus_pulse.db.session import get_db
from campus_pulse.services.collaborators import (
    Notifier,
    ProfileDirectory,
    get_notifier,
    get_profile_directory,
)
from campus_pulse.services.pair_lock import PairLockService, get_pair_lock_service

# Missing credentials are reported as 401 below rather than FastAPI's default.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the caller's user id from the bearer token.

    Raises:
        HTTPException: If the token is missing, invalid, or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from err


def get_profile_directory_dep() -> ProfileDirectory:
    """Return the shared profile directory."""
    return get_profile_directory()


def get_notifier_dep() -> Notifier:
    """Return the shared notifier."""
    return get_notifier()


def get_pair_lock_service_dep() -> PairLockService:
    """Return the shared pair lock service."""
    return get_pair_lock_service()


CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]
ProfileDirectoryDep = Annotated[ProfileDirectory, Depends(get_profile_directory_dep)]
NotifierDep = Annotated[Notifier, Depends(get_notifier_dep)]
PairLockDep = Annotated[PairLockService, Depends(get_pair_lock_service_dep)]
