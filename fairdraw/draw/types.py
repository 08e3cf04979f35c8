"""Value objects shared by the draw subsystem."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Optional

from ..db.utils import as_utc, dt_iso


class DrawMethod(str, Enum):
    """How the entropy of a draw was assembled."""

    CRYPTO = "crypto"
    EXTERNAL = "external"


class CommitmentStatus(str, Enum):
    PENDING = "pending"
    CONSUMED = "consumed"
    VOIDED = "voided"
    EXPIRED = "expired"


@dataclass(frozen=True)
class DrawSeed:
    """Secret and public inputs of a draw, fixed at commitment time.

    Attributes
    ----------
    public_seed : str
        Value that can be shown before the draw; derived without ``private_seed``.
    private_seed : str
        Secret half of the seed. Disclosed only once the draw has executed.
    timestamp : int
        Milliseconds since the epoch at which the seed was generated.
    external_entropy : Optional[str]
        Third-party randomness (e.g. a public block hash) when one was available.
    """

    public_seed: str
    private_seed: str
    timestamp: int
    external_entropy: Optional[str] = None

    @property
    def method(self) -> DrawMethod:
        if self.external_entropy:
            return DrawMethod.EXTERNAL
        return DrawMethod.CRYPTO

    def to_dict(self) -> dict[str, Any]:
        return {
            "publicSeed": self.public_seed,
            "privateSeed": self.private_seed,
            "timestamp": self.timestamp,
            "externalEntropy": self.external_entropy,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DrawSeed":
        """Rebuild a seed from its :meth:`to_dict` form.

        Raises
        ------
        ValueError
            If a field is missing or has the wrong type.
        """
        try:
            public_seed = data["publicSeed"]
            private_seed = data["privateSeed"]
            timestamp = data["timestamp"]
        except KeyError as exc:
            raise ValueError(f"seed is missing field {exc.args[0]!r}") from exc
        external_entropy = data.get("externalEntropy")

        if not isinstance(public_seed, str) or not isinstance(private_seed, str):
            raise ValueError("seed values must be strings")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError("seed timestamp must be an integer")
        if external_entropy is not None and not isinstance(external_entropy, str):
            raise ValueError("external entropy must be a string")
        return cls(
            public_seed=public_seed,
            private_seed=private_seed,
            timestamp=timestamp,
            external_entropy=external_entropy,
        )


@dataclass(frozen=True)
class Commitment:
    """A published commitment to a :class:`DrawSeed`.

    The seed is carried for the engine's benefit only; :meth:`to_public_dict`
    never includes it.
    """

    raffle_id: str
    commitment_hash: str
    scheduled_draw_time: datetime
    published_at: datetime
    seed: DrawSeed = field(repr=False)
    id: Optional[int] = None
    status: CommitmentStatus = CommitmentStatus.PENDING
    draw_id: Optional[str] = None
    consumed_at: Optional[datetime] = None

    def expires_at(self, ttl: timedelta) -> datetime:
        return as_utc(self.scheduled_draw_time) + ttl

    def is_live(self, now: datetime, ttl: timedelta) -> bool:
        """Whether this commitment still blocks a new one for the same raffle."""
        return self.status is CommitmentStatus.PENDING and as_utc(now) <= self.expires_at(ttl)

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "raffleId": self.raffle_id,
            "commitmentHash": self.commitment_hash,
            "drawScheduledAt": dt_iso(self.scheduled_draw_time),
            "publishedAt": dt_iso(self.published_at),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class DrawResult:
    draw_id: str
    raffle_id: str
    winning_ticket_number: int
    seed: DrawSeed
    proof: str
    computed_at: datetime
    final_hash: str
    method: DrawMethod
    total_tickets: int
    participant_count: int


@dataclass(frozen=True)
class AuditVerification:
    """Hashes stored beside an audit entry so replays need not trust plaintext."""

    seed_hash: str
    result_hash: str
    video_url: Optional[str] = None
    witness_signature: Optional[str] = None


@dataclass(frozen=True)
class DrawAuditLog:
    """Immutable record of one executed draw."""

    draw_id: str
    raffle_id: str
    method: DrawMethod
    seed: DrawSeed
    result: int
    total_tickets: int
    participant_count: int
    timestamp: datetime
    verification: AuditVerification
    proof: str
    final_hash: str
    commitment_hash: Optional[str] = None

    @property
    def winning_ticket_number(self) -> int:
        return self.result

    @property
    def proof_available(self) -> bool:
        return bool(self.proof)


@dataclass(frozen=True)
class DrawVerification:
    """Attestation that somebody re-ran the verification of a draw."""

    draw_id: str
    verified: bool
    verified_at: datetime
    verifier: Optional[str] = None


__all__ = [
    "AuditVerification",
    "Commitment",
    "CommitmentStatus",
    "DrawAuditLog",
    "DrawMethod",
    "DrawResult",
    "DrawSeed",
    "DrawVerification",
]
