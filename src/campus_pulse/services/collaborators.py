"""Clients for the profile and notification collaborators.

Both services are reached over HTTP when their URL is configured. Without
a URL the profile directory answers with id-only placeholders and the
notifier reports itself disabled so outbox rows are marked skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from campus_pulse.core.settings import settings
from campus_pulse.schemas.user import UserProfile

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_BAD_REQUEST = 400


class CollaboratorError(RuntimeError):
    """Raised when a collaborator call fails or returns garbage."""


class ProfileDirectory(Protocol):
    """Looks up public profiles by user id."""

    def get_user_profile(self, user_id: str) -> UserProfile: ...


class Notifier(Protocol):
    """Dispatches user notifications."""

    @property
    def enabled(self) -> bool: ...

    def send_notification(self, user_id: str, kind: str, payload: Mapping[str, Any]) -> None: ...


def _auth_headers() -> dict[str, str]:
    if settings.collaborator_token:
        return {"Authorization": f"Bearer {settings.collaborator_token}"}
    return {}


class PlaceholderProfileDirectory:
    """Profile directory used when no profile service is configured."""

    def get_user_profile(self, user_id: str) -> UserProfile:
        return UserProfile(id=user_id)


class HttpProfileDirectory:
    """Profile directory backed by ``GET {base_url}/users/{user_id}``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        timeout = (
            settings.collaborator_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers=_auth_headers(),
            transport=transport,
        )

    def get_user_profile(self, user_id: str) -> UserProfile:
        try:
            response = self._client.get(f"/users/{user_id}")
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Profile lookup failed: {exc}") from exc

        if response.status_code == HTTP_NOT_FOUND:
            logger.warning("Profile service has no user %s", user_id)
            return UserProfile(id=user_id)
        if response.status_code >= HTTP_BAD_REQUEST:
            raise CollaboratorError(f"Profile service responded with {response.status_code}")

        try:
            data = response.json()
            if isinstance(data, dict):
                data.setdefault("id", user_id)
            return UserProfile.model_validate(data)
        except (ValueError, PydanticValidationError) as exc:
            raise CollaboratorError("Profile service returned an invalid profile") from exc

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._client.close()


class DisabledNotifier:
    """Notifier used when no notification service is configured."""

    enabled = False

    def send_notification(self, user_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        logger.info("Notification %s for %s not sent: notifier disabled", kind, user_id)


class HttpNotifier:
    """Notifier backed by ``POST {base_url}/notifications``."""

    enabled = True

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        timeout = (
            settings.collaborator_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers=_auth_headers(),
            transport=transport,
        )

    def send_notification(self, user_id: str, kind: str, payload: Mapping[str, Any]) -> None:
        body = {"user_id": user_id, "kind": kind, "payload": dict(payload)}
        try:
            response = self._client.post("/notifications", json=body)
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Notification dispatch failed: {exc}") from exc
        if response.status_code >= HTTP_BAD_REQUEST:
            raise CollaboratorError(f"Notification service responded with {response.status_code}")

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._client.close()


class _CollaboratorSingletons:
    """Process-wide collaborator clients."""

    profiles: ProfileDirectory | None = None
    notifier: Notifier | None = None


def get_profile_directory() -> ProfileDirectory:
    """Return the configured profile directory."""
    if _CollaboratorSingletons.profiles is None:
        if settings.profile_service_url:
            _CollaboratorSingletons.profiles = HttpProfileDirectory(settings.profile_service_url)
        else:
            _CollaboratorSingletons.profiles = PlaceholderProfileDirectory()
    return _CollaboratorSingletons.profiles


def get_notifier() -> Notifier:
    """Return the configured notifier."""
    if _CollaboratorSingletons.notifier is None:
        if settings.notification_service_url:
            _CollaboratorSingletons.notifier = HttpNotifier(settings.notification_service_url)
        else:
            _CollaboratorSingletons.notifier = DisabledNotifier()
    return _CollaboratorSingletons.notifier


def close_collaborators() -> None:
    """Close HTTP clients and forget the singletons."""
    for client in (_CollaboratorSingletons.profiles, _CollaboratorSingletons.notifier):
        close = getattr(client, "close", None)
        if close is not None:
            close()
    _CollaboratorSingletons.profiles = None
    _CollaboratorSingletons.notifier = None
