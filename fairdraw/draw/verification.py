"""Independent recomputation of draws from their audit entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from ..db.utils import as_utc
from ..errors import AuditRecordNotFound, VerificationInputError
from .audit import AuditLogStore
from .hashing import (
    MAX_TOTAL_TICKETS,
    compute_final_hash,
    decode_proof,
    derive_winning_ticket,
    result_hash,
    seed_hash,
)
from .types import DrawAuditLog, DrawSeed

if TYPE_CHECKING:
    from ..storage.base import DrawStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationReport:
    """Outcome of verifying one audit entry.

    ``checks`` maps each check name to whether it passed, in the order the
    checks were run.
    """

    draw_id: str
    verified: bool
    checks: dict[str, bool] = field(default_factory=dict)

    @property
    def failed_checks(self) -> list[str]:
        return [name for name, passed in self.checks.items() if not passed]


def _require_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise VerificationInputError(f"{name} must be an integer")
    return value


class VerificationService:
    """Recompute draws and compare them with what the audit log recorded.

    A mismatch is reported as ``False``; only missing or malformed records
    raise :class:`VerificationInputError`.
    """

    def __init__(
        self, store: "DrawStore", audit_log: Optional[AuditLogStore] = None
    ) -> None:
        self._store = store
        self._audit_log = audit_log or AuditLogStore(store)

    def verify(
        self,
        raffle_id: str,
        draw_id: str,
        total_tickets: int,
        participant_count: int,
    ) -> bool:
        """Return whether draw ``draw_id`` of ``raffle_id`` reproduces.

        Raises
        ------
        AuditRecordNotFound
            If no entry ``draw_id`` exists for ``raffle_id``.
        VerificationInputError
            If the stored entry or the supplied counts are malformed.
        """
        return self.check(raffle_id, draw_id, total_tickets, participant_count).verified

    def check(
        self,
        raffle_id: str,
        draw_id: str,
        total_tickets: int,
        participant_count: int,
    ) -> VerificationReport:
        entry = self._audit_log.get_by_id(draw_id)
        if entry.raffle_id != raffle_id:
            raise AuditRecordNotFound(
                f"Audit entry {draw_id} does not belong to raffle {raffle_id}"
            )
        return self.check_entry(entry, total_tickets, participant_count)

    def verify_entry(
        self, entry: DrawAuditLog, total_tickets: int, participant_count: int
    ) -> bool:
        return self.check_entry(entry, total_tickets, participant_count).verified

    def verify_stored(self, draw_id: str) -> bool:
        """Verify ``draw_id`` against the ticket counts stored with it."""
        entry = self._audit_log.get_by_id(draw_id)
        return self.check_entry(entry, entry.total_tickets, entry.participant_count).verified

    def check_entry(
        self, entry: DrawAuditLog, total_tickets: int, participant_count: int
    ) -> VerificationReport:
        """Run every check against ``entry`` using the supplied counts.

        Checks
        ------
        ``seed_hash``
            The revealed seed hashes to the stored seed hash.
        ``commitment``
            The seed hash equals the commitment published for the draw, and
            the commitment predates the draw.
        ``result_hash``
            The stored result hash matches the result and supplied counts.
        ``final_hash``
            The hash recomputed from seed and supplied counts equals the
            stored one and the one inside the proof.
        ``proof``
            The proof carries the same seed and result as the entry.
        ``winning_ticket``
            Deriving the ticket from the recomputed hash gives the stored one.
        """
        total_tickets = _require_int("total_tickets", total_tickets)
        participant_count = _require_int("participant_count", participant_count)
        if total_tickets < 1 or total_tickets > MAX_TOTAL_TICKETS or participant_count < 0:
            # Counts no draw could have been run with never reproduce one.
            return VerificationReport(entry.draw_id, False, {"parameters": False})

        seed = entry.seed
        if not isinstance(seed, DrawSeed):
            raise VerificationInputError(f"Audit entry {entry.draw_id} has no seed")
        result = _require_int("result", entry.result)
        try:
            proof = decode_proof(entry.proof)
            proof_seed = DrawSeed.from_dict(proof)
            computed_seed_hash = seed_hash(seed)
            recomputed_final = compute_final_hash(seed, total_tickets, participant_count)
        except (TypeError, ValueError) as exc:
            raise VerificationInputError(
                f"Audit entry {entry.draw_id} is malformed: {exc}"
            ) from exc

        checks: dict[str, bool] = {}
        checks["seed_hash"] = computed_seed_hash == entry.verification.seed_hash
        checks["commitment"] = self._commitment_matches(entry, computed_seed_hash)
        checks["result_hash"] = (
            result_hash(result, total_tickets, participant_count)
            == entry.verification.result_hash
        )
        checks["final_hash"] = (
            recomputed_final == entry.final_hash and recomputed_final == proof["finalHash"]
        )
        checks["proof"] = proof_seed == seed and proof["result"] == result
        checks["winning_ticket"] = (
            derive_winning_ticket(recomputed_final, total_tickets) == result
        )

        report = VerificationReport(entry.draw_id, all(checks.values()), checks)
        if not report.verified:
            logger.warning(
                "Verification of draw %s (raffle %s) failed: %s",
                entry.draw_id,
                entry.raffle_id,
                ", ".join(report.failed_checks),
            )
        return report

    def _commitment_matches(self, entry: DrawAuditLog, computed_seed_hash: str) -> bool:
        if entry.commitment_hash is not None and entry.commitment_hash != computed_seed_hash:
            return False
        commitment = self._store.get_commitment_for_draw(entry.draw_id)
        if commitment is None:
            return True
        if commitment.commitment_hash != computed_seed_hash:
            return False
        return as_utc(commitment.published_at) <= as_utc(entry.timestamp)


__all__ = ["VerificationReport", "VerificationService"]
