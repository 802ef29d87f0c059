"""Error taxonomy shared by the Pulse services.

Every service raises one of these; the API layer maps them onto HTTP
responses in a single exception handler.
"""

from __future__ import annotations


class PulseError(RuntimeError):
    """Base exception for all Pulse failures."""

    status_code: int = 500
    kind: str = "internal_error"


class ValidationError(PulseError):
    """Bad input that the caller can correct. Never retried."""

    status_code = 422
    kind = "validation_error"


class AuthorizationError(PulseError):
    """The caller acted on a resource owned by someone else."""

    status_code = 403
    kind = "authorization_error"


class NotFoundError(PulseError):
    """The post is missing, deleted, or past its expiry."""

    status_code = 404
    kind = "not_found"


class InvalidRequestError(PulseError):
    """A reveal was requested on a public post, or by the author on their own post."""

    status_code = 400
    kind = "invalid_request"


class TransientError(PulseError):
    """Storage contention or timeout. Safe to retry since every mutation is idempotent."""

    status_code = 503
    kind = "transient_error"
