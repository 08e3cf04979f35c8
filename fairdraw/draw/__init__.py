"""Provably-fair draw subsystem."""

from .audit import AuditLogStore
from .commitments import DEFAULT_COMMITMENT_TTL, SeedCommitmentPublisher
from .engine import DrawEngine, validate_draw_parameters
from .hashing import ALGORITHM, MAX_TOTAL_TICKETS, decode_proof, derive_winning_ticket
from .locks import DEFAULT_RAFFLE_LOCKS, RaffleLocks
from .report import ComplianceReport, ComplianceReportGenerator
from .types import (
    AuditVerification,
    Commitment,
    CommitmentStatus,
    DrawAuditLog,
    DrawMethod,
    DrawResult,
    DrawSeed,
    DrawVerification,
)
from .verification import VerificationReport, VerificationService

__all__ = [
    "ALGORITHM",
    "AuditLogStore",
    "AuditVerification",
    "Commitment",
    "CommitmentStatus",
    "ComplianceReport",
    "ComplianceReportGenerator",
    "DEFAULT_COMMITMENT_TTL",
    "DEFAULT_RAFFLE_LOCKS",
    "DrawAuditLog",
    "DrawEngine",
    "DrawMethod",
    "DrawResult",
    "DrawSeed",
    "DrawVerification",
    "MAX_TOTAL_TICKETS",
    "RaffleLocks",
    "SeedCommitmentPublisher",
    "VerificationReport",
    "VerificationService",
    "decode_proof",
    "derive_winning_ticket",
    "validate_draw_parameters",
]
