"""In-process :class:`DrawStore`, used by tests and single-process tooling."""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from ..draw.types import (
    Commitment,
    CommitmentStatus,
    DrawAuditLog,
    DrawVerification,
)
from ..errors import (
    AuditLogImmutableError,
    AuditRecordNotFound,
    DuplicateCommitmentError,
)
from .base import DrawStore


class InMemoryDrawStore(DrawStore):
    """Dictionary-backed store. Values are frozen dataclasses, so stored
    entries cannot be mutated in place either."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._commitments: Dict[int, Commitment] = {}
        self._audits: Dict[str, DrawAuditLog] = {}
        self._verifications: List[DrawVerification] = []

    def add_commitment(self, commitment: Commitment) -> Commitment:
        with self._lock:
            if commitment.status is CommitmentStatus.PENDING and any(
                c.raffle_id == commitment.raffle_id and c.status is CommitmentStatus.PENDING
                for c in self._commitments.values()
            ):
                raise DuplicateCommitmentError(
                    f"Raffle {commitment.raffle_id} already has a live commitment"
                )
            stored = replace(commitment, id=next(self._ids))
            self._commitments[stored.id] = stored
            return stored

    def get_commitment(self, raffle_id: str) -> Optional[Commitment]:
        with self._lock:
            matches = [c for c in self._commitments.values() if c.raffle_id == raffle_id]
        if not matches:
            return None
        return max(matches, key=lambda c: (c.published_at, c.id or 0))

    def get_commitment_for_draw(self, draw_id: str) -> Optional[Commitment]:
        with self._lock:
            for commitment in self._commitments.values():
                if commitment.draw_id == draw_id:
                    return commitment
        return None

    def mark_consumed(
        self, commitment_id: int, draw_id: str, consumed_at: datetime
    ) -> bool:
        with self._lock:
            current = self._commitments.get(commitment_id)
            if current is None or current.status is not CommitmentStatus.PENDING:
                return False
            self._commitments[commitment_id] = replace(
                current,
                status=CommitmentStatus.CONSUMED,
                draw_id=draw_id,
                consumed_at=consumed_at,
            )
            return True

    def transition_commitment(
        self,
        commitment_id: int,
        expected: CommitmentStatus,
        new: CommitmentStatus,
    ) -> bool:
        with self._lock:
            current = self._commitments.get(commitment_id)
            if current is None or current.status is not expected:
                return False
            self._commitments[commitment_id] = replace(current, status=new)
            return True

    def append_audit(
        self, entry: DrawAuditLog, commitment_id: Optional[int] = None
    ) -> DrawAuditLog:
        with self._lock:
            if entry.draw_id in self._audits:
                raise AuditLogImmutableError(
                    f"Audit entry {entry.draw_id} already exists and cannot be replaced"
                )
            self._audits[entry.draw_id] = entry
            return entry

    def get_audit(self, draw_id: str) -> Optional[DrawAuditLog]:
        with self._lock:
            return self._audits.get(draw_id)

    def list_audits(self, raffle_id: Optional[str] = None) -> list[DrawAuditLog]:
        with self._lock:
            entries = list(self._audits.values())
        if raffle_id is not None:
            entries = [e for e in entries if e.raffle_id == raffle_id]
        return sorted(entries, key=lambda e: e.timestamp)

    def append_verification(self, verification: DrawVerification) -> DrawVerification:
        with self._lock:
            if verification.draw_id not in self._audits:
                raise AuditRecordNotFound(f"Audit entry {verification.draw_id} not found")
            self._verifications.append(verification)
            return verification

    def list_verifications(self, draw_id: str) -> list[DrawVerification]:
        with self._lock:
            return [v for v in self._verifications if v.draw_id == draw_id]


__all__ = ["InMemoryDrawStore"]
