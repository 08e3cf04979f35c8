"""Database models for seed commitments and the draw audit log."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, mapped_column, relationship

from ..db.utils import as_utc
from ..draw.hashing import canonical_json
from ..draw.types import (
    AuditVerification,
    Commitment,
    CommitmentStatus,
    DrawAuditLog,
    DrawMethod,
    DrawSeed,
    DrawVerification,
)
from ..errors import AuditLogImmutableError
from .base import ID_TYPE, Base


class SeedCommitmentRecord(Base):
    """A published seed commitment together with its (private) seed."""

    __tablename__ = "seed_commitments"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    raffle_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    """Raffle the commitment belongs to."""

    commitment_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    """SHA-256 of the serialized seed, published before the draw."""

    seed_json: Mapped[str] = mapped_column(Text, nullable=False)
    """Canonical JSON of the seed. Never exposed before the draw executes."""

    scheduled_draw_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CommitmentStatus.PENDING.value
    )
    """``pending`` until a draw consumes it, or ``voided``/``expired``."""

    draw_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    audits: Mapped[list["DrawAuditRecord"]] = relationship(back_populates="commitment")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','consumed','voided','expired')",
            name="status_enum",
        ),
        Index("ix_seed_commitments_raffle_status", "raffle_id", "status"),
        # At most one pending commitment per raffle, across processes.
        Index(
            "uq_seed_commitments_pending_raffle",
            "raffle_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    @classmethod
    def from_commitment(cls, commitment: Commitment) -> "SeedCommitmentRecord":
        return cls(
            raffle_id=commitment.raffle_id,
            commitment_hash=commitment.commitment_hash,
            seed_json=canonical_json(commitment.seed.to_dict()).decode("utf-8"),
            scheduled_draw_time=commitment.scheduled_draw_time,
            published_at=commitment.published_at,
            status=commitment.status.value,
            draw_id=commitment.draw_id,
            consumed_at=commitment.consumed_at,
        )

    def to_commitment(self) -> Commitment:
        return Commitment(
            id=self.id,
            raffle_id=self.raffle_id,
            commitment_hash=self.commitment_hash,
            scheduled_draw_time=as_utc(self.scheduled_draw_time),
            published_at=as_utc(self.published_at),
            seed=DrawSeed.from_dict(json.loads(self.seed_json)),
            status=CommitmentStatus(self.status),
            draw_id=self.draw_id,
            consumed_at=as_utc(self.consumed_at) if self.consumed_at else None,
        )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<SeedCommitmentRecord(id={id}, raffle_id={raffle}, status={status})>".format(
            id=self.id,
            raffle=self.raffle_id,
            status=self.status,
        )


class DrawAuditRecord(Base):
    """Append-only record of an executed draw.

    Rows are inserted once and rejected on any later UPDATE or DELETE issued
    through the ORM (see the listeners at the bottom of this module).
    """

    __tablename__ = "draw_audit_logs"

    draw_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    raffle_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    commitment_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("seed_commitments.id", ondelete="RESTRICT"),
        nullable=True,
    )
    method: Mapped[str] = mapped_column(String(16), nullable=False)

    public_seed: Mapped[str] = mapped_column(String(255), nullable=False)
    private_seed: Mapped[str] = mapped_column(String(255), nullable=False)
    seed_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Seed generation time in milliseconds since the epoch."""

    external_entropy: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    winning_ticket_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_tickets: Mapped[int] = mapped_column(BigInteger, nullable=False)
    participant_count: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    seed_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    result_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    final_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    commitment_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    proof: Mapped[str] = mapped_column(Text, nullable=False)
    video_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    witness_signature: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    commitment: Mapped[Optional["SeedCommitmentRecord"]] = relationship(
        back_populates="audits"
    )
    verifications: Mapped[list["DrawVerificationRecord"]] = relationship(
        back_populates="audit",
        order_by="DrawVerificationRecord.id",
    )

    __table_args__ = (
        CheckConstraint("method IN ('crypto','external')", name="method_enum"),
        CheckConstraint("total_tickets >= 1", name="total_tickets_positive"),
        CheckConstraint("participant_count >= 0", name="participant_count_nonneg"),
        Index("ix_draw_audit_logs_timestamp", "timestamp"),
    )

    @classmethod
    def from_entry(
        cls, entry: DrawAuditLog, commitment_id: Optional[int] = None
    ) -> "DrawAuditRecord":
        return cls(
            draw_id=entry.draw_id,
            raffle_id=entry.raffle_id,
            commitment_id=commitment_id,
            method=entry.method.value,
            public_seed=entry.seed.public_seed,
            private_seed=entry.seed.private_seed,
            seed_timestamp=entry.seed.timestamp,
            external_entropy=entry.seed.external_entropy,
            winning_ticket_number=entry.result,
            total_tickets=entry.total_tickets,
            participant_count=entry.participant_count,
            timestamp=entry.timestamp,
            seed_hash=entry.verification.seed_hash,
            result_hash=entry.verification.result_hash,
            final_hash=entry.final_hash,
            commitment_hash=entry.commitment_hash,
            proof=entry.proof,
            video_url=entry.verification.video_url,
            witness_signature=entry.verification.witness_signature,
        )

    def to_entry(self) -> DrawAuditLog:
        """Convert the row into a :class:`DrawAuditLog`.

        Raises
        ------
        ValueError
            If the stored method is not a known :class:`DrawMethod`.
        """
        return DrawAuditLog(
            draw_id=self.draw_id,
            raffle_id=self.raffle_id,
            method=DrawMethod(self.method),
            seed=DrawSeed(
                public_seed=self.public_seed,
                private_seed=self.private_seed,
                timestamp=self.seed_timestamp,
                external_entropy=self.external_entropy,
            ),
            result=self.winning_ticket_number,
            total_tickets=self.total_tickets,
            participant_count=self.participant_count,
            timestamp=as_utc(self.timestamp),
            verification=AuditVerification(
                seed_hash=self.seed_hash,
                result_hash=self.result_hash,
                video_url=self.video_url,
                witness_signature=self.witness_signature,
            ),
            proof=self.proof,
            final_hash=self.final_hash,
            commitment_hash=self.commitment_hash,
        )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawAuditRecord(draw_id={id}, raffle_id={raffle}, result={result})>".format(
            id=self.draw_id,
            raffle=self.raffle_id,
            result=self.winning_ticket_number,
        )


class DrawVerificationRecord(Base):
    """Append-only attestation that a draw was re-verified."""

    __tablename__ = "draw_verifications"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[str] = mapped_column(
        ForeignKey("draw_audit_logs.draw_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    verifier: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Free-form identifier of who asked for the verification, if known."""

    audit: Mapped["DrawAuditRecord"] = relationship(back_populates="verifications")

    def to_verification(self) -> DrawVerification:
        return DrawVerification(
            draw_id=self.draw_id,
            verified=self.verified,
            verified_at=as_utc(self.verified_at),
            verifier=self.verifier,
        )


_APPEND_ONLY = (DrawAuditRecord, DrawVerificationRecord)


def _reject_mutation(mapper, connection, target) -> None:
    raise AuditLogImmutableError(
        f"{type(target).__name__} rows are append-only and cannot be modified"
    )


for _model in _APPEND_ONLY:
    event.listen(_model, "before_update", _reject_mutation)
    event.listen(_model, "before_delete", _reject_mutation)


@event.listens_for(Session, "do_orm_execute")
def _reject_bulk_mutation(orm_execute_state: ORMExecuteState) -> None:
    # Bulk ``update()``/``delete()`` statements bypass the mapper events above.
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    for mapper in orm_execute_state.all_mappers:
        if mapper.class_ in _APPEND_ONLY:
            raise AuditLogImmutableError(
                f"{mapper.class_.__name__} rows are append-only and cannot be modified"
            )


__all__ = [
    "DrawAuditRecord",
    "DrawVerificationRecord",
    "SeedCommitmentRecord",
]
