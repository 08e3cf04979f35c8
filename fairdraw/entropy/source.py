"""Cryptographically secure randomness plus optional external entropy."""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from ..config import Settings
from ..errors import ExternalEntropyUnavailable
from .external import BlockHashProvider, ExternalEntropyProvider

logger = logging.getLogger(__name__)

_FRACTION_BITS = 53


class EntropySource:
    """Randomness for seeds, backed by :mod:`secrets`.

    Parameters
    ----------
    external : Optional[ExternalEntropyProvider], default: None
        Provider of third-party randomness. Without one,
        :meth:`fetch_external_entropy` always returns ``None`` and draws are
        crypto-only.
    """

    def __init__(self, external: Optional[ExternalEntropyProvider] = None) -> None:
        self._external = external

    @classmethod
    def from_settings(cls, settings: Settings) -> "EntropySource":
        external = None
        if settings.entropy_url:
            external = BlockHashProvider(
                settings.entropy_url, timeout=settings.entropy_timeout
            )
        return cls(external=external)

    @property
    def has_external(self) -> bool:
        return self._external is not None

    def next_random_fraction(self) -> float:
        """Return a uniformly distributed float in ``[0, 1)``."""
        return secrets.randbits(_FRACTION_BITS) / (1 << _FRACTION_BITS)

    def random_bytes(self, nbytes: int = 32) -> bytes:
        return secrets.token_bytes(nbytes)

    def random_hex(self, nbytes: int = 32) -> str:
        return secrets.token_hex(nbytes)

    def fetch_external_entropy(self) -> Optional[str]:
        """Best-effort external randomness; ``None`` means crypto-only.

        Failures are logged and swallowed here so that callers only have to
        branch on ``None``.
        """
        if self._external is None:
            return None
        try:
            return self._external.fetch()
        except ExternalEntropyUnavailable as exc:
            logger.warning(
                "External entropy unavailable from %s, falling back to crypto-only: %s",
                self._external.source_identifier,
                exc.detail,
            )
            return None


__all__ = ["EntropySource"]
