"""Draw execution: reveal the committed seed and derive the winning ticket."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Optional

from ..errors import (
    AuditLogWriteError,
    DrawAlreadyConductedError,
    InvalidDrawParameters,
    SeedNotFoundError,
)
from .audit import AuditLogStore
from .commitments import validate_raffle_id
from .hashing import MAX_TOTAL_TICKETS, compute_final_hash, derive_winning_ticket, encode_proof
from .ids import generate_draw_id
from .locks import DEFAULT_RAFFLE_LOCKS, RaffleLocks
from .types import Commitment, CommitmentStatus, DrawResult

if TYPE_CHECKING:
    from ..storage.base import DrawStore

logger = logging.getLogger(__name__)


def validate_draw_parameters(total_tickets: int, participant_count: int) -> None:
    """Raise :class:`InvalidDrawParameters` unless both counts are usable."""
    for name, value in (("total_tickets", total_tickets), ("participant_count", participant_count)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidDrawParameters(f"{name} must be an integer")
    if total_tickets < 1:
        raise InvalidDrawParameters("total_tickets must be at least 1")
    if total_tickets > MAX_TOTAL_TICKETS:
        raise InvalidDrawParameters(f"total_tickets must not exceed {MAX_TOTAL_TICKETS}")
    if participant_count < 0:
        raise InvalidDrawParameters("participant_count must not be negative")


class DrawEngine:
    """Engine that consumes a raffle's commitment and records the winner.

    Draws are never retried: once a commitment has been consumed the only way
    to draw again is a fresh commitment, and a raffle with a logged draw
    cannot get one.

    Parameters
    ----------
    store : DrawStore
        Storage holding commitments and the audit log.
    audit_log : Optional[AuditLogStore], default: None
        Audit log wrapper; built on ``store`` when omitted.
    locks : Optional[RaffleLocks], default: None
        Per-raffle lock registry. Defaults to the process-wide registry that
        :class:`~fairdraw.draw.commitments.SeedCommitmentPublisher` also uses.
    clock : Optional[Callable[[], datetime]], default: None
        Returns the current aware datetime.
    """

    def __init__(
        self,
        store: "DrawStore",
        audit_log: Optional[AuditLogStore] = None,
        *,
        locks: Optional[RaffleLocks] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._audit_log = audit_log or AuditLogStore(store)
        self._locks = locks or DEFAULT_RAFFLE_LOCKS
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def conduct_draw(
        self, raffle_id: str, total_tickets: int, participant_count: int
    ) -> DrawResult:
        """Reveal the committed seed of ``raffle_id`` and pick the winning ticket.

        Returns
        -------
        DrawResult
            The winning ticket in ``[1, total_tickets]`` with its proof.

        Notes
        -----
        Steps, all under the raffle's lock:

        1. Load the latest commitment; it must still be ``pending``.
        2. Hash the length-prefixed public seed, private seed, external
           entropy, ticket count and participant count.
        3. Derive the ticket by rejection sampling over the digest.
        4. Compare-and-swap the commitment to ``consumed``.
        5. Append the audit entry. If that fails the commitment is voided and
           :class:`AuditLogWriteError` is raised; the draw did not happen.

        Raises
        ------
        InvalidDrawParameters
            If ``total_tickets < 1`` or ``participant_count < 0``.
        SeedNotFoundError
            If no pending commitment exists for the raffle.
        DrawAlreadyConductedError
            If the commitment has already been consumed.
        AuditLogWriteError
            If the audit entry could not be persisted.
        """
        validate_raffle_id(raffle_id)
        validate_draw_parameters(total_tickets, participant_count)

        with self._locks.hold(raffle_id):
            commitment = self._load_pending_commitment(raffle_id)
            seed = commitment.seed
            computed_at = self._clock()

            final_hash = compute_final_hash(seed, total_tickets, participant_count)
            winning_ticket_number = derive_winning_ticket(final_hash, total_tickets)
            proof = encode_proof(
                seed, final_hash, winning_ticket_number, total_tickets, participant_count
            )
            draw_id = generate_draw_id(self._store)

            if not self._store.mark_consumed(commitment.id, draw_id, computed_at):
                raise DrawAlreadyConductedError(
                    f"Commitment for raffle {raffle_id} was consumed concurrently"
                )

            try:
                self._audit_log.append(
                    raffle_id,
                    draw_id,
                    seed,
                    winning_ticket_number,
                    total_tickets,
                    participant_count,
                    final_hash=final_hash,
                    proof=proof,
                    commitment=commitment,
                    timestamp=computed_at,
                )
            except Exception as exc:
                self._void_commitment(commitment, draw_id)
                if isinstance(exc, AuditLogWriteError):
                    raise
                raise AuditLogWriteError(
                    f"Draw {draw_id} for raffle {raffle_id} could not be logged: {exc}"
                ) from exc

        logger.info(
            "Draw %s for raffle %s: ticket %d of %d (%d participants, method %s)",
            draw_id,
            raffle_id,
            winning_ticket_number,
            total_tickets,
            participant_count,
            seed.method.value,
        )
        return DrawResult(
            draw_id=draw_id,
            raffle_id=raffle_id,
            winning_ticket_number=winning_ticket_number,
            seed=seed,
            proof=proof,
            computed_at=computed_at,
            final_hash=final_hash,
            method=seed.method,
            total_tickets=total_tickets,
            participant_count=participant_count,
        )

    def _load_pending_commitment(self, raffle_id: str) -> Commitment:
        commitment = self._store.get_commitment(raffle_id)
        if commitment is None:
            raise SeedNotFoundError(f"No seed commitment published for raffle {raffle_id}")
        if commitment.status is CommitmentStatus.CONSUMED:
            raise DrawAlreadyConductedError(
                f"Raffle {raffle_id} was already drawn ({commitment.draw_id})"
            )
        if commitment.status is not CommitmentStatus.PENDING:
            raise SeedNotFoundError(
                f"Latest commitment for raffle {raffle_id} is {commitment.status.value}; "
                "publish a new one"
            )
        return commitment

    def _void_commitment(self, commitment: Commitment, draw_id: str) -> None:
        logger.error(
            "Audit append failed for draw %s; voiding commitment %s of raffle %s",
            draw_id,
            commitment.commitment_hash,
            commitment.raffle_id,
        )
        try:
            self._store.transition_commitment(
                commitment.id, CommitmentStatus.CONSUMED, CommitmentStatus.VOIDED
            )
        except Exception:
            # The original failure is what the caller needs to see.
            logger.exception(
                "Could not void commitment %s of raffle %s",
                commitment.commitment_hash,
                commitment.raffle_id,
            )


__all__ = ["DrawEngine", "validate_draw_parameters"]
