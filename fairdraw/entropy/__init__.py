"""Randomness inputs for draws."""

from .external import BlockHashProvider, ExternalEntropyProvider
from .source import EntropySource

__all__ = ["BlockHashProvider", "EntropySource", "ExternalEntropyProvider"]
