"""Public compliance reports built from the audit log."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..db.utils import dt_iso
from ..errors import VerificationInputError
from .audit import AuditLogStore
from .types import DrawAuditLog
from .verification import VerificationService

if TYPE_CHECKING:
    from ..storage.base import DrawStore

STANDARD = "PROVABLY_FAIR_CRYPTOGRAPHIC_RNG"
DEFAULT_AUTHORITY = "DANISH_GAMBLING_AUTHORITY"
VERIFICATION_NOTE = (
    "All draws can be independently verified using the provided seeds and hashes"
)


@dataclass
class ComplianceReport:
    raffle_id: str
    generated_at: datetime
    standard: str
    authority: str
    draws: list[dict[str, Any]] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, Any]:
        verified = sum(1 for draw in self.draws if draw["verification"]["verified"])
        return {
            "totalDraws": len(self.draws),
            "verifiedDraws": verified,
            "failedVerifications": len(self.draws) - verified,
            "allVerified": verified == len(self.draws),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "raffleId": self.raffle_id,
            "generatedAt": dt_iso(self.generated_at),
            "standard": self.standard,
            "authority": self.authority,
            "draws": self.draws,
            "summary": self.summary,
        }


class ComplianceReportGenerator:
    """Aggregate a raffle's audit entries into a transparency report.

    Reports only read from the store; they do not record verification
    attestations.

    Parameters
    ----------
    store : DrawStore
        Storage holding the audit log.
    verifier : Optional[VerificationService], default: None
        Service used to re-verify each draw; built on ``store`` when omitted.
    authority : str, default: ``DEFAULT_AUTHORITY``
        Regulator named in the report header.
    clock : Optional[Callable[[], datetime]], default: None
        Returns the report generation time.
    """

    def __init__(
        self,
        store: "DrawStore",
        verifier: Optional[VerificationService] = None,
        *,
        authority: str = DEFAULT_AUTHORITY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._audit_log = AuditLogStore(store)
        self._verifier = verifier or VerificationService(store, self._audit_log)
        self._authority = authority
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate_report(self, raffle_id: str) -> ComplianceReport:
        return ComplianceReport(
            raffle_id=raffle_id,
            generated_at=self._clock(),
            standard=STANDARD,
            authority=self._authority,
            draws=[self._describe(entry) for entry in self._audit_log.get_by_raffle(raffle_id)],
        )

    def export_json(self, raffle_id: str) -> str:
        """Return the report of ``raffle_id`` as indented JSON."""
        payload = self.generate_report(raffle_id).to_dict()
        payload["exportTimestamp"] = payload["generatedAt"]
        payload["verification"] = VERIFICATION_NOTE
        return json.dumps(payload, indent=2)

    def _describe(self, entry: DrawAuditLog) -> dict[str, Any]:
        try:
            report = self._verifier.check_entry(
                entry, entry.total_tickets, entry.participant_count
            )
            verification: dict[str, Any] = {
                "verified": report.verified,
                "failedChecks": report.failed_checks,
            }
        except VerificationInputError as exc:
            verification = {"verified": False, "failedChecks": [], "error": exc.detail}

        attestation = self._audit_log.first_successful_verification(entry.draw_id)
        return {
            "drawId": entry.draw_id,
            "method": entry.method.value,
            "seedHash": entry.verification.seed_hash,
            "resultHash": entry.verification.result_hash,
            "commitmentHash": entry.commitment_hash,
            "winningTicketNumber": entry.result,
            "totalTickets": entry.total_tickets,
            "participantCount": entry.participant_count,
            "timestamp": dt_iso(entry.timestamp),
            "revealedSeed": entry.seed.to_dict(),
            "videoUrl": entry.verification.video_url,
            "witnessSignature": entry.verification.witness_signature,
            "isVerified": attestation is not None,
            "verifiedAt": dt_iso(attestation.verified_at) if attestation else None,
            "verification": verification,
        }


__all__ = [
    "ComplianceReport",
    "ComplianceReportGenerator",
    "DEFAULT_AUTHORITY",
    "STANDARD",
]
