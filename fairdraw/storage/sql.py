"""SQLAlchemy-backed :class:`DrawStore`."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..draw.types import (
    Commitment,
    CommitmentStatus,
    DrawAuditLog,
    DrawVerification,
)
from ..errors import (
    AuditLogImmutableError,
    AuditLogWriteError,
    AuditRecordNotFound,
    DuplicateCommitmentError,
)
from ..models import DrawAuditRecord, DrawVerificationRecord, SeedCommitmentRecord
from .base import DrawStore

logger = logging.getLogger(__name__)


class SqlAlchemyDrawStore(DrawStore):
    """Store bound to a :class:`sessionmaker`.

    Every operation runs in its own transaction, so an append has been
    committed by the time the method returns.

    Parameters
    ----------
    session_factory : sessionmaker
        Factory producing sessions bound to the target database. Tables must
        already exist (``Base.metadata.create_all`` or Alembic).
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._Session = session_factory

    # -------- commitments --------
    def add_commitment(self, commitment: Commitment) -> Commitment:
        try:
            with self._Session.begin() as session:
                record = SeedCommitmentRecord.from_commitment(commitment)
                session.add(record)
                session.flush()
                return record.to_commitment()
        except IntegrityError as exc:
            # uq_seed_commitments_pending_raffle: another writer got there first.
            logger.warning(
                f"Rejected second pending commitment for raffle {commitment.raffle_id}: {exc.orig}"
            )
            raise DuplicateCommitmentError(
                f"Raffle {commitment.raffle_id} already has a live commitment"
            ) from exc

    def get_commitment(self, raffle_id: str) -> Optional[Commitment]:
        with self._Session() as session:
            record = session.scalars(
                select(SeedCommitmentRecord)
                .where(SeedCommitmentRecord.raffle_id == raffle_id)
                .order_by(
                    SeedCommitmentRecord.published_at.desc(),
                    SeedCommitmentRecord.id.desc(),
                )
            ).first()
            return record.to_commitment() if record is not None else None

    def get_commitment_for_draw(self, draw_id: str) -> Optional[Commitment]:
        with self._Session() as session:
            record = session.scalar(
                select(SeedCommitmentRecord).where(SeedCommitmentRecord.draw_id == draw_id)
            )
            return record.to_commitment() if record is not None else None

    def mark_consumed(
        self, commitment_id: int, draw_id: str, consumed_at: datetime
    ) -> bool:
        # Conditional UPDATE: only one concurrent caller can see rowcount == 1.
        with self._Session.begin() as session:
            result = session.execute(
                update(SeedCommitmentRecord)
                .where(
                    SeedCommitmentRecord.id == commitment_id,
                    SeedCommitmentRecord.status == CommitmentStatus.PENDING.value,
                )
                .values(
                    status=CommitmentStatus.CONSUMED.value,
                    draw_id=draw_id,
                    consumed_at=consumed_at,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def transition_commitment(
        self,
        commitment_id: int,
        expected: CommitmentStatus,
        new: CommitmentStatus,
    ) -> bool:
        with self._Session.begin() as session:
            result = session.execute(
                update(SeedCommitmentRecord)
                .where(
                    SeedCommitmentRecord.id == commitment_id,
                    SeedCommitmentRecord.status == expected.value,
                )
                .values(status=new.value)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # -------- audit log --------
    def append_audit(
        self, entry: DrawAuditLog, commitment_id: Optional[int] = None
    ) -> DrawAuditLog:
        try:
            with self._Session.begin() as session:
                if session.get(DrawAuditRecord, entry.draw_id) is not None:
                    raise AuditLogImmutableError(
                        f"Audit entry {entry.draw_id} already exists and cannot be replaced"
                    )
                session.add(DrawAuditRecord.from_entry(entry, commitment_id=commitment_id))
        except SQLAlchemyError as exc:
            logger.error(f"Failed to append audit entry {entry.draw_id}: {exc}")
            raise AuditLogWriteError(
                f"Audit entry {entry.draw_id} could not be persisted"
            ) from exc
        return entry

    def get_audit(self, draw_id: str) -> Optional[DrawAuditLog]:
        with self._Session() as session:
            record = session.get(DrawAuditRecord, draw_id)
            return record.to_entry() if record is not None else None

    def list_audits(self, raffle_id: Optional[str] = None) -> list[DrawAuditLog]:
        stmt = select(DrawAuditRecord)
        if raffle_id is not None:
            stmt = stmt.where(DrawAuditRecord.raffle_id == raffle_id)
        stmt = stmt.order_by(DrawAuditRecord.timestamp.asc(), DrawAuditRecord.draw_id.asc())
        with self._Session() as session:
            return [record.to_entry() for record in session.scalars(stmt).all()]

    # -------- verifications --------
    def append_verification(self, verification: DrawVerification) -> DrawVerification:
        with self._Session.begin() as session:
            if session.get(DrawAuditRecord, verification.draw_id) is None:
                raise AuditRecordNotFound(f"Audit entry {verification.draw_id} not found")
            session.add(
                DrawVerificationRecord(
                    draw_id=verification.draw_id,
                    verified=verification.verified,
                    verified_at=verification.verified_at,
                    verifier=verification.verifier,
                )
            )
        return verification

    def list_verifications(self, draw_id: str) -> list[DrawVerification]:
        with self._Session() as session:
            records = session.scalars(
                select(DrawVerificationRecord)
                .where(DrawVerificationRecord.draw_id == draw_id)
                .order_by(DrawVerificationRecord.id.asc())
            ).all()
            return [record.to_verification() for record in records]


__all__ = ["SqlAlchemyDrawStore"]
