"""High-level draw workflows shared by the HTTP API and the CLI."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy.orm import Session, sessionmaker

from .config import ROOT_DIR, Settings, get_settings
from .db.utils import dt_iso, resolve_sqlite_url
from .draw.audit import AuditLogStore
from .draw.commitments import SeedCommitmentPublisher
from .draw.engine import DrawEngine
from .draw.hashing import decode_proof
from .draw.locks import RaffleLocks
from .draw.report import DEFAULT_AUTHORITY, STANDARD, ComplianceReportGenerator
from .draw.types import Commitment, DrawAuditLog, DrawResult
from .draw.verification import VerificationService
from .entropy import EntropySource
from .errors import AuditRecordNotFound, VerificationInputError

if TYPE_CHECKING:
    from .storage.base import DrawStore
    from .storage.sql import SqlAlchemyDrawStore


def build_store(
    session_factory: Optional[sessionmaker[Session]] = None,
    database_url: Optional[str] = None,
    create_tables: bool = False,
) -> "SqlAlchemyDrawStore":
    """Return a SQL-backed store, creating an engine when no factory is given.

    Parameters
    ----------
    session_factory : Optional[sessionmaker]
        Factory to bind the store to. When omitted an engine is created for
        ``database_url`` (or ``DB_URL``).
    database_url : Optional[str]
        Database URL used when no ``session_factory`` is supplied.
    create_tables : bool, default: False
        Run ``Base.metadata.create_all`` on the new engine. Production
        databases are managed with Alembic instead.
    """
    from .db.engine import get_sessionmaker, make_engine
    from .models import Base
    from .storage.sql import SqlAlchemyDrawStore

    if session_factory is None:
        if database_url:
            database_url = resolve_sqlite_url(database_url, ROOT_DIR)
        engine = make_engine(database_url)
        if create_tables:
            Base.metadata.create_all(engine)
        session_factory = get_sessionmaker(engine)
    return SqlAlchemyDrawStore(session_factory)


def publish_seed_commitment(
    store: "DrawStore",
    raffle_id: str,
    draw_scheduled_at: datetime,
    *,
    settings: Optional[Settings] = None,
    entropy: Optional[EntropySource] = None,
    locks: Optional[RaffleLocks] = None,
) -> Commitment:
    """Generate a seed for ``raffle_id`` and publish its commitment.

    The entropy source and the commitment TTL default to those configured in
    ``settings`` (read from the environment when omitted).
    """
    settings = settings or get_settings()
    publisher = SeedCommitmentPublisher(
        store,
        entropy or EntropySource.from_settings(settings),
        ttl=settings.commitment_ttl,
        locks=locks,
    )
    return publisher.publish(raffle_id, draw_scheduled_at)


def run_draw(
    store: "DrawStore",
    raffle_id: str,
    total_tickets: int,
    participant_count: int,
    *,
    locks: Optional[RaffleLocks] = None,
) -> DrawResult:
    return DrawEngine(store, locks=locks).conduct_draw(
        raffle_id, total_tickets, participant_count
    )


def public_audit_view(audit_log: AuditLogStore, entry: DrawAuditLog) -> dict[str, Any]:
    """Public fields of an audit entry. The private seed and proof are withheld."""
    attestation = audit_log.first_successful_verification(entry.draw_id)
    return {
        "id": entry.draw_id,
        "raffleId": entry.raffle_id,
        "drawMethod": entry.method.value,
        "winningTicketNumber": entry.result,
        "totalTickets": entry.total_tickets,
        "participantCount": entry.participant_count,
        "seedHash": entry.verification.seed_hash,
        "timestamp": dt_iso(entry.timestamp),
        "isVerified": attestation is not None,
        "verifiedAt": dt_iso(attestation.verified_at) if attestation else None,
        "proofAvailable": entry.proof_available,
    }


def list_public_audits(
    store: "DrawStore", raffle_id: Optional[str] = None
) -> list[dict[str, Any]]:
    audit_log = AuditLogStore(store)
    if raffle_id:
        entries = audit_log.get_by_raffle(raffle_id)
    else:
        entries = audit_log.list_all()
    return [public_audit_view(audit_log, entry) for entry in entries]


def transparency_block(now: Optional[datetime] = None) -> dict[str, Any]:
    return {
        "standard": STANDARD,
        "authority": DEFAULT_AUTHORITY,
        "verification": (
            "All draws can be independently verified using the /api/verify-draw endpoint"
        ),
        "lastUpdated": dt_iso(now or datetime.now(timezone.utc)),
    }


def verify_draw(
    store: "DrawStore",
    raffle_id: str,
    audit_id: str,
    *,
    verifier: Optional[str] = None,
) -> tuple[bool, dict[str, Any]]:
    """Re-verify a stored draw against its own ticket counts.

    The first successful verification appends an attestation, so the returned
    view reflects it. Later successes and all failures leave the table as it
    is; the endpoint behind this is public.

    Returns
    -------
    tuple[bool, dict]
        Whether the draw reproduced, and the public view of the audit entry.

    Raises
    ------
    AuditRecordNotFound
        If ``audit_id`` does not exist or belongs to another raffle.
    VerificationInputError
        If the stored entry is malformed.
    """
    audit_log = AuditLogStore(store)
    service = VerificationService(store, audit_log)
    entry = audit_log.get_by_id(audit_id)
    if entry.raffle_id != raffle_id:
        raise AuditRecordNotFound(
            f"Audit entry {audit_id} does not belong to raffle {raffle_id}"
        )

    verified = service.verify_entry(entry, entry.total_tickets, entry.participant_count)
    if verified and audit_log.first_successful_verification(entry.draw_id) is None:
        audit_log.record_verification(entry.draw_id, True, verifier=verifier)
    return verified, public_audit_view(audit_log, entry)


def generate_compliance_report(store: "DrawStore", raffle_id: str) -> dict[str, Any]:
    return ComplianceReportGenerator(store).generate_report(raffle_id).to_dict()


def export_audit_log(store: "DrawStore", raffle_id: str) -> str:
    return ComplianceReportGenerator(store).export_json(raffle_id)


def get_draw_proof(store: "DrawStore", audit_id: str) -> dict[str, Any]:
    """Return the decoded proof of a completed draw together with its encoding.

    Raises
    ------
    AuditRecordNotFound
        If ``audit_id`` does not exist.
    VerificationInputError
        If the stored proof cannot be decoded.
    """
    entry = AuditLogStore(store).get_by_id(audit_id)
    try:
        decoded = decode_proof(entry.proof)
    except ValueError as exc:
        raise VerificationInputError(
            f"Proof of audit entry {audit_id} is malformed: {exc}"
        ) from exc
    return {
        "auditId": entry.draw_id,
        "raffleId": entry.raffle_id,
        "proof": entry.proof,
        "decoded": decoded,
    }


__all__ = [
    "build_store",
    "export_audit_log",
    "generate_compliance_report",
    "get_draw_proof",
    "list_public_audits",
    "public_audit_view",
    "publish_seed_commitment",
    "run_draw",
    "transparency_block",
    "verify_draw",
]
