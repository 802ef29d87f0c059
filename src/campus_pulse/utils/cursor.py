"""Opaque keyset cursors for feed pagination."""

from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime

from campus_pulse.core.errors import ValidationError
from campus_pulse.db.time import as_utc


def encode_cursor(created_at: datetime, post_id: str) -> str:
    """Return an URL-safe cursor pointing just past ``(created_at, post_id)``."""
    raw = json.dumps(
        {"t": as_utc(created_at).isoformat(), "id": post_id},
        separators=(",", ":"),
    )
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Return the ``(created_at, post_id)`` position stored in ``cursor``.

    Raises:
        ValidationError: If the cursor was not produced by :func:`encode_cursor`.
    """
    padding = "=" * (-len(cursor) % 4)
    try:
        raw = base64.urlsafe_b64decode(cursor + padding)
        data = json.loads(raw.decode("utf-8"))
        created_at = datetime.fromisoformat(data["t"])
        post_id = data["id"]
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
        raise ValidationError("Malformed feed cursor") from exc

    if not isinstance(post_id, str) or not post_id:
        raise ValidationError("Malformed feed cursor")
    return as_utc(created_at), post_id
