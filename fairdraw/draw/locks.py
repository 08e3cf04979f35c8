"""Per-raffle mutual exclusion for commitment and draw operations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class RaffleLocks:
    """Registry handing out one :class:`threading.Lock` per raffle id.

    An entry lives only while some thread holds or waits for it, so the
    registry stays as small as the number of raffles currently in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def __contains__(self, raffle_id: object) -> bool:
        with self._guard:
            return raffle_id in self._entries

    def _acquire_entry(self, raffle_id: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(raffle_id)
            if entry is None:
                entry = self._entries[raffle_id] = _Entry()
            entry.users += 1
            return entry

    def _release_entry(self, raffle_id: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[raffle_id]

    @contextmanager
    def hold(self, raffle_id: str) -> Iterator[None]:
        """Hold the raffle's lock for the duration of the ``with`` block."""
        entry = self._acquire_entry(raffle_id)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(raffle_id, entry)


DEFAULT_RAFFLE_LOCKS = RaffleLocks()

__all__ = ["DEFAULT_RAFFLE_LOCKS", "RaffleLocks"]
