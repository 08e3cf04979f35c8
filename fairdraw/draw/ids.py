"""Identifier helpers for draws."""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..storage.base import DrawStore

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_draw_id(
    store: Optional["DrawStore"] = None,
    prefix: str = "draw",
    length: int = 16,
    max_attempts: int = 32,
) -> str:
    """Return a unique draw identifier using base62 random characters.

    When a store is provided, the helper retries if the generated value is
    already used by an audit entry.
    """
    attempts = 0
    while attempts < max_attempts:
        suffix = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))
        candidate = f"{prefix}_{suffix}"[:64]

        if store is not None and store.get_audit(candidate) is not None:
            attempts += 1
            continue

        return candidate

    raise RuntimeError("Unable to generate a unique draw identifier after multiple attempts")


__all__ = ["BASE62_ALPHABET", "generate_draw_id"]
