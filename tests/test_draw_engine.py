from __future__ import annotations

import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.draw import (
    CommitmentStatus,
    DrawEngine,
    DrawMethod,
    RaffleLocks,
    SeedCommitmentPublisher,
    VerificationService,
    decode_proof,
)
from fairdraw.draw.hashing import compute_final_hash, derive_winning_ticket
from fairdraw.entropy import EntropySource
from fairdraw.errors import (
    AuditLogWriteError,
    DrawAlreadyConductedError,
    InvalidDrawParameters,
    SeedNotFoundError,
)
from fairdraw.models import Base
from fairdraw.storage import InMemoryDrawStore, SqlAlchemyDrawStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StaticProvider:
    source_identifier = "static"

    def fetch(self) -> str:
        return "cd" * 32


class _DrawEngineCases:
    """Scenarios shared by every store implementation."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self.store = self.make_store()
        self.clock = FakeClock(T0)
        self.locks = RaffleLocks()
        self.publisher = SeedCommitmentPublisher(self.store, locks=self.locks, clock=self.clock)
        self.engine = DrawEngine(self.store, locks=self.locks, clock=self.clock)

    def _publish(self, raffle_id: str = "raffle-1"):
        commitment = self.publisher.publish(raffle_id, T0 + timedelta(hours=1))
        self.clock.now = T0 + timedelta(hours=1)
        return commitment

    def test_draw_with_500_tickets_and_47_participants(self) -> None:
        commitment = self._publish()
        result = self.engine.conduct_draw("raffle-1", 500, 47)

        self.assertGreaterEqual(result.winning_ticket_number, 1)
        self.assertLessEqual(result.winning_ticket_number, 500)
        self.assertEqual(result.seed, commitment.seed)
        self.assertEqual(result.method, DrawMethod.CRYPTO)
        self.assertEqual(result.computed_at, T0 + timedelta(hours=1))

        proof = decode_proof(result.proof)
        self.assertEqual(proof["result"], result.winning_ticket_number)
        self.assertEqual(proof["finalHash"], result.final_hash)

        audits = self.store.list_audits("raffle-1")
        self.assertEqual(len(audits), 1)
        self.assertEqual(audits[0].draw_id, result.draw_id)
        self.assertEqual(audits[0].commitment_hash, commitment.commitment_hash)
        self.assertEqual(audits[0].verification.seed_hash, commitment.commitment_hash)

        self.assertTrue(
            VerificationService(self.store).verify("raffle-1", result.draw_id, 500, 47)
        )

    def test_result_is_reproducible_from_seed(self) -> None:
        commitment = self._publish()
        result = self.engine.conduct_draw("raffle-1", 500, 47)
        expected = derive_winning_ticket(compute_final_hash(commitment.seed, 500, 47), 500)
        self.assertEqual(result.winning_ticket_number, expected)

    def test_commitment_is_consumed(self) -> None:
        commitment = self._publish()
        result = self.engine.conduct_draw("raffle-1", 500, 47)

        stored = self.store.get_commitment("raffle-1")
        self.assertEqual(stored.id, commitment.id)
        self.assertEqual(stored.status, CommitmentStatus.CONSUMED)
        self.assertEqual(stored.draw_id, result.draw_id)
        self.assertEqual(self.store.get_commitment_for_draw(result.draw_id).id, commitment.id)

    def test_zero_tickets_rejected_before_any_state_change(self) -> None:
        self._publish()
        with self.assertRaises(InvalidDrawParameters):
            self.engine.conduct_draw("raffle-1", 0, 0)

        self.assertEqual(self.store.get_commitment("raffle-1").status, CommitmentStatus.PENDING)
        self.assertEqual(self.store.list_audits("raffle-1"), [])

    def test_negative_participants_rejected(self) -> None:
        self._publish()
        with self.assertRaises(InvalidDrawParameters):
            self.engine.conduct_draw("raffle-1", 10, -1)

    def test_non_integer_tickets_rejected(self) -> None:
        self._publish()
        with self.assertRaises(InvalidDrawParameters):
            self.engine.conduct_draw("raffle-1", 10.5, 3)

    def test_missing_commitment(self) -> None:
        with self.assertRaises(SeedNotFoundError):
            self.engine.conduct_draw("raffle-unknown", 10, 3)

    def test_second_draw_rejected(self) -> None:
        self._publish()
        self.engine.conduct_draw("raffle-1", 500, 47)
        with self.assertRaises(DrawAlreadyConductedError):
            self.engine.conduct_draw("raffle-1", 500, 47)
        self.assertEqual(len(self.store.list_audits("raffle-1")), 1)

    def test_external_entropy_marks_method(self) -> None:
        publisher = SeedCommitmentPublisher(
            self.store,
            EntropySource(external=StaticProvider()),
            locks=self.locks,
            clock=self.clock,
        )
        publisher.publish("raffle-ext", T0 + timedelta(hours=1))
        result = self.engine.conduct_draw("raffle-ext", 20, 4)

        self.assertEqual(result.method, DrawMethod.EXTERNAL)
        self.assertEqual(self.store.get_audit(result.draw_id).method, DrawMethod.EXTERNAL)

    def test_audit_failure_voids_commitment(self) -> None:
        self._publish()
        with patch.object(self.store, "append_audit", side_effect=RuntimeError("disk full")):
            with self.assertRaises(AuditLogWriteError):
                self.engine.conduct_draw("raffle-1", 500, 47)

        self.assertEqual(self.store.get_commitment("raffle-1").status, CommitmentStatus.VOIDED)
        self.assertEqual(self.store.list_audits("raffle-1"), [])
        with self.assertRaises(SeedNotFoundError):
            self.engine.conduct_draw("raffle-1", 500, 47)

        # The raffle can be re-scheduled with a fresh commitment.
        self.publisher.publish("raffle-1", T0 + timedelta(hours=3))
        result = self.engine.conduct_draw("raffle-1", 500, 47)
        self.assertEqual(len(self.store.list_audits("raffle-1")), 1)
        self.assertEqual(self.store.list_audits("raffle-1")[0].draw_id, result.draw_id)

    def test_lost_compare_and_swap(self) -> None:
        self._publish()
        with patch.object(self.store, "mark_consumed", return_value=False):
            with self.assertRaises(DrawAlreadyConductedError):
                self.engine.conduct_draw("raffle-1", 500, 47)
        self.assertEqual(self.store.list_audits("raffle-1"), [])


class InMemoryDrawEngineTests(_DrawEngineCases, unittest.TestCase):
    def make_store(self):
        return InMemoryDrawStore()

    def test_concurrent_draws_produce_one_result(self) -> None:
        self._publish()
        results, errors = [], []

        def attempt() -> None:
            # Separate engines share only the store and the lock registry.
            engine = DrawEngine(self.store, locks=self.locks, clock=self.clock)
            try:
                results.append(engine.conduct_draw("raffle-1", 500, 47))
            except DrawAlreadyConductedError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 7)
        self.assertEqual(len(self.store.list_audits("raffle-1")), 1)


class SqlDrawEngineTests(_DrawEngineCases, unittest.TestCase):
    def make_store(self):
        self.db = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.db)
        return SqlAlchemyDrawStore(get_sessionmaker(self.db))

    def tearDown(self) -> None:
        self.db.dispose()

    def test_separate_engines_cannot_double_draw(self) -> None:
        self._publish()
        first = DrawEngine(self.store, locks=RaffleLocks(), clock=self.clock)
        second = DrawEngine(self.store, locks=RaffleLocks(), clock=self.clock)

        first.conduct_draw("raffle-1", 500, 47)
        with self.assertRaises(DrawAlreadyConductedError):
            second.conduct_draw("raffle-1", 500, 47)


if __name__ == "__main__":
    unittest.main()
