"""Storage contract used by the draw components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ..draw.types import (
    Commitment,
    CommitmentStatus,
    DrawAuditLog,
    DrawVerification,
)


class DrawStore(ABC):
    """Append-only persistence for the draw subsystem.

    Commitments move through ``pending -> consumed`` (or ``voided`` /
    ``expired``) only through compare-and-swap transitions. Audit entries and
    verifications can be appended and read, never changed.
    """

    # -------- commitments --------
    @abstractmethod
    def add_commitment(self, commitment: Commitment) -> Commitment:
        """Persist ``commitment`` and return it with its assigned ``id``.

        Raises :class:`DuplicateCommitmentError` if the raffle already has a
        pending commitment.
        """

    @abstractmethod
    def get_commitment(self, raffle_id: str) -> Optional[Commitment]:
        """Return the most recently published commitment for ``raffle_id``."""

    @abstractmethod
    def get_commitment_for_draw(self, draw_id: str) -> Optional[Commitment]:
        """Return the commitment consumed by ``draw_id``, if any."""

    @abstractmethod
    def mark_consumed(
        self, commitment_id: int, draw_id: str, consumed_at: datetime
    ) -> bool:
        """Atomically move a ``pending`` commitment to ``consumed``.

        Returns ``False`` when the commitment was no longer pending, which
        means another draw got there first.
        """

    @abstractmethod
    def transition_commitment(
        self,
        commitment_id: int,
        expected: CommitmentStatus,
        new: CommitmentStatus,
    ) -> bool:
        """Move a commitment from ``expected`` to ``new``; ``False`` if it was not ``expected``."""

    # -------- audit log --------
    @abstractmethod
    def append_audit(
        self, entry: DrawAuditLog, commitment_id: Optional[int] = None
    ) -> DrawAuditLog:
        """Durably append ``entry``.

        Raises
        ------
        AuditLogImmutableError
            If an entry with the same draw id already exists.
        AuditLogWriteError
            If the backend failed to persist the entry.
        """

    @abstractmethod
    def get_audit(self, draw_id: str) -> Optional[DrawAuditLog]: ...

    @abstractmethod
    def list_audits(self, raffle_id: Optional[str] = None) -> list[DrawAuditLog]:
        """Return audit entries ordered by timestamp, optionally for one raffle."""

    # -------- verifications --------
    @abstractmethod
    def append_verification(self, verification: DrawVerification) -> DrawVerification: ...

    @abstractmethod
    def list_verifications(self, draw_id: str) -> list[DrawVerification]: ...


__all__ = ["DrawStore"]
