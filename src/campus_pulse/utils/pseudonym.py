"""Display names for anonymous authors."""

from __future__ import annotations

import hashlib
import hmac

from campus_pulse.core.settings import settings

_ADJECTIVES = (
    "Amber", "Brave", "Calm", "Cosmic", "Curious", "Dapper", "Electric", "Fuzzy",
    "Gentle", "Golden", "Hidden", "Jolly", "Lucky", "Mellow", "Misty", "Neon",
    "Quiet", "Rapid", "Rusty", "Silver", "Sleepy", "Sunny", "Velvet", "Wild",
)
_ANIMALS = (
    "Badger", "Crane", "Dolphin", "Falcon", "Fox", "Gecko", "Heron", "Koala",
    "Lynx", "Marmot", "Moose", "Otter", "Owl", "Panda", "Puffin", "Raven",
    "Seal", "Sparrow", "Tiger", "Turtle", "Walrus", "Wolf", "Yak", "Zebra",
)


def pseudonym_for(post_id: str, author_id: str, *, secret: str | None = None) -> str:
    """Return a stable per-post alias for the author of ``post_id``.

    The alias is keyed on both ids so the same author gets unrelated names on
    different posts, and the secret keeps it from being inverted offline.
    """
    key = (secret if secret is not None else settings.secret_key).encode("utf-8")
    digest = hmac.new(key, f"{post_id}:{author_id}".encode(), hashlib.sha256).digest()
    adjective = _ADJECTIVES[digest[0] % len(_ADJECTIVES)]
    animal = _ANIMALS[digest[1] % len(_ANIMALS)]
    number = int.from_bytes(digest[2:4], "big") % 100
    return f"{adjective} {animal} {number:02d}"
