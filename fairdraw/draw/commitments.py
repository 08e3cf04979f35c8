"""Seed generation and commitment publication."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional

from ..db.utils import as_utc
from ..entropy.source import EntropySource
from ..errors import (
    DrawAlreadyConductedError,
    DuplicateCommitmentError,
    InvalidDrawParameters,
)
from .hashing import length_prefixed, seed_hash, sha256_hex
from .locks import DEFAULT_RAFFLE_LOCKS, RaffleLocks
from .types import Commitment, CommitmentStatus, DrawSeed

if TYPE_CHECKING:
    from ..storage.base import DrawStore

logger = logging.getLogger(__name__)

DEFAULT_COMMITMENT_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_raffle_id(raffle_id: str) -> str:
    if not isinstance(raffle_id, str) or not raffle_id.strip():
        raise InvalidDrawParameters("raffle_id must be a non-empty string")
    if len(raffle_id) > 100:
        raise InvalidDrawParameters("raffle_id must be at most 100 characters")
    return raffle_id


class SeedCommitmentPublisher:
    """Generate draw seeds and publish their commitment hashes.

    Parameters
    ----------
    store : DrawStore
        Storage for commitments; the seed is kept there privately until the
        draw reveals it.
    entropy : Optional[EntropySource], default: None
        Randomness source. A crypto-only :class:`EntropySource` is used when
        omitted.
    ttl : timedelta, default: 24 hours
        Grace period after the scheduled draw time during which a pending
        commitment still blocks publication of a new one.
    locks : Optional[RaffleLocks], default: None
        Lock registry shared with :class:`~fairdraw.draw.engine.DrawEngine`.
    clock : Optional[Callable[[], datetime]], default: None
        Returns the current aware datetime; overridable in tests.
    """

    def __init__(
        self,
        store: "DrawStore",
        entropy: Optional[EntropySource] = None,
        *,
        ttl: timedelta = DEFAULT_COMMITMENT_TTL,
        locks: Optional[RaffleLocks] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._entropy = entropy or EntropySource()
        self._ttl = ttl
        self._locks = locks or DEFAULT_RAFFLE_LOCKS
        self._clock = clock or _utcnow

    def generate_seed(self, now: Optional[datetime] = None) -> DrawSeed:
        """Build a fresh :class:`DrawSeed`.

        The public seed combines the timestamp with random hex; the private
        seed hashes the public seed together with 32 further random bytes, so
        it cannot be derived from anything published.
        """
        now = now or self._clock()
        timestamp = int(as_utc(now).timestamp() * 1000)
        public_seed = f"{timestamp}-{self._entropy.random_hex(8)}"
        private_seed = sha256_hex(
            length_prefixed(public_seed, self._entropy.random_hex(32), timestamp)
        )
        return DrawSeed(
            public_seed=public_seed,
            private_seed=private_seed,
            timestamp=timestamp,
            external_entropy=self._entropy.fetch_external_entropy(),
        )

    def publish(self, raffle_id: str, scheduled_draw_time: datetime) -> Commitment:
        """Publish a commitment for ``raffle_id`` and return it.

        Raises
        ------
        InvalidDrawParameters
            If the raffle id is empty or the draw time is not in the future.
        DrawAlreadyConductedError
            If the raffle already has a completed draw.
        DuplicateCommitmentError
            If a live commitment already exists for the raffle.
        """
        validate_raffle_id(raffle_id)
        if not isinstance(scheduled_draw_time, datetime):
            raise InvalidDrawParameters("scheduled_draw_time must be a datetime")
        scheduled = as_utc(scheduled_draw_time)

        with self._locks.hold(raffle_id):
            now = self._clock()
            if scheduled <= now:
                raise InvalidDrawParameters("scheduled_draw_time must be in the future")

            if self._store.list_audits(raffle_id):
                raise DrawAlreadyConductedError(
                    f"Raffle {raffle_id} has already been drawn"
                )

            existing = self._store.get_commitment(raffle_id)
            if existing is not None and existing.status is CommitmentStatus.PENDING:
                if existing.is_live(now, self._ttl):
                    raise DuplicateCommitmentError(
                        f"Raffle {raffle_id} already has a live commitment "
                        f"(expires {existing.expires_at(self._ttl).isoformat()})"
                    )
                self._store.transition_commitment(
                    existing.id, CommitmentStatus.PENDING, CommitmentStatus.EXPIRED
                )
                logger.info(
                    "Expired stale commitment %s for raffle %s",
                    existing.commitment_hash,
                    raffle_id,
                )

            seed = self.generate_seed(now)
            commitment = self._store.add_commitment(
                Commitment(
                    raffle_id=raffle_id,
                    commitment_hash=seed_hash(seed),
                    scheduled_draw_time=scheduled,
                    published_at=now,
                    seed=seed,
                )
            )

        logger.info(
            "Draw commitment for raffle %s: %s (draw at %s, method %s)",
            raffle_id,
            commitment.commitment_hash,
            scheduled.isoformat(),
            seed.method.value,
        )
        return commitment

    def publish_commitment(self, raffle_id: str, scheduled_draw_time: datetime) -> str:
        """Publish a commitment and return only its hash."""
        return self.publish(raffle_id, scheduled_draw_time).commitment_hash


__all__ = [
    "DEFAULT_COMMITMENT_TTL",
    "SeedCommitmentPublisher",
    "validate_raffle_id",
]
