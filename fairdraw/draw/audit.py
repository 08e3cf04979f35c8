"""Append-only audit log of executed draws."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from ..errors import AuditRecordNotFound
from .hashing import compute_final_hash, encode_proof, result_hash, seed_hash
from .types import (
    AuditVerification,
    Commitment,
    DrawAuditLog,
    DrawSeed,
    DrawVerification,
)

if TYPE_CHECKING:
    from ..storage.base import DrawStore


class AuditLogStore:
    """Builds audit entries and appends them to a :class:`DrawStore`.

    Only appends and reads are exposed; the backing stores reject attempts to
    replace, update or delete an existing entry.
    """

    def __init__(self, store: "DrawStore") -> None:
        self._store = store

    def append(
        self,
        raffle_id: str,
        draw_id: str,
        seed: DrawSeed,
        result: int,
        total_tickets: int,
        participant_count: int,
        *,
        final_hash: Optional[str] = None,
        proof: Optional[str] = None,
        commitment: Optional[Commitment] = None,
        timestamp: Optional[datetime] = None,
        video_url: Optional[str] = None,
        witness_signature: Optional[str] = None,
    ) -> DrawAuditLog:
        """Compute the verification hashes for a draw and append its entry.

        Parameters
        ----------
        raffle_id : str
            Raffle the draw belongs to.
        draw_id : str
            Unique identifier of the draw.
        seed : DrawSeed
            The revealed seed.
        result : int
            Winning ticket number.
        total_tickets : int
            Tickets in the draw.
        participant_count : int
            Distinct participants in the draw.
        final_hash : Optional[str], default: None
            Hash computed by the engine; recomputed from the seed when omitted.
        proof : Optional[str], default: None
            Encoded proof; built from the inputs when omitted.
        commitment : Optional[Commitment], default: None
            Commitment consumed by the draw. Its hash is copied into the entry.
        timestamp : Optional[datetime], default: None
            Time of the draw; now when omitted.
        video_url, witness_signature : Optional[str]
            Optional external evidence attached to the entry.

        Returns
        -------
        DrawAuditLog
            The entry as stored.
        """
        if final_hash is None:
            final_hash = compute_final_hash(seed, total_tickets, participant_count)
        if proof is None:
            proof = encode_proof(seed, final_hash, result, total_tickets, participant_count)

        entry = DrawAuditLog(
            draw_id=draw_id,
            raffle_id=raffle_id,
            method=seed.method,
            seed=seed,
            result=result,
            total_tickets=total_tickets,
            participant_count=participant_count,
            timestamp=timestamp or datetime.now(timezone.utc),
            verification=AuditVerification(
                seed_hash=seed_hash(seed),
                result_hash=result_hash(result, total_tickets, participant_count),
                video_url=video_url,
                witness_signature=witness_signature,
            ),
            proof=proof,
            final_hash=final_hash,
            commitment_hash=commitment.commitment_hash if commitment else None,
        )
        return self._store.append_audit(
            entry, commitment_id=commitment.id if commitment else None
        )

    def get_by_raffle(self, raffle_id: str) -> list[DrawAuditLog]:
        return self._store.list_audits(raffle_id)

    def get_by_id(self, draw_id: str) -> DrawAuditLog:
        """Return the entry for ``draw_id`` or raise :class:`AuditRecordNotFound`."""
        entry = self._store.get_audit(draw_id)
        if entry is None:
            raise AuditRecordNotFound(f"Audit entry {draw_id} not found")
        return entry

    def list_all(self) -> list[DrawAuditLog]:
        return self._store.list_audits()

    def record_verification(
        self,
        draw_id: str,
        verified: bool,
        *,
        verifier: Optional[str] = None,
        verified_at: Optional[datetime] = None,
    ) -> DrawVerification:
        return self._store.append_verification(
            DrawVerification(
                draw_id=draw_id,
                verified=verified,
                verified_at=verified_at or datetime.now(timezone.utc),
                verifier=verifier,
            )
        )

    def verifications(self, draw_id: str) -> list[DrawVerification]:
        return self._store.list_verifications(draw_id)

    def first_successful_verification(self, draw_id: str) -> Optional[DrawVerification]:
        for verification in self.verifications(draw_id):
            if verification.verified:
                return verification
        return None


__all__ = ["AuditLogStore"]
