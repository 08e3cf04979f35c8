from __future__ import annotations

import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.draw import (
    AuditVerification,
    DrawEngine,
    RaffleLocks,
    SeedCommitmentPublisher,
    VerificationService,
)
from fairdraw.draw.hashing import (
    compute_final_hash,
    derive_winning_ticket,
    encode_proof,
    result_hash,
    seed_hash,
)
from fairdraw.errors import AuditRecordNotFound, VerificationInputError
from fairdraw.models import Base
from fairdraw.storage import InMemoryDrawStore, SqlAlchemyDrawStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _flip(value: str, index: int) -> str:
    replacement = "0" if value[index] != "0" else "1"
    return value[:index] + replacement + value[index + 1 :]


class InMemoryVerificationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryDrawStore()
        locks = RaffleLocks()
        clock = lambda: T0  # noqa: E731
        SeedCommitmentPublisher(self.store, locks=locks, clock=clock).publish(
            "raffle-1", T0 + timedelta(hours=1)
        )
        self.result = DrawEngine(self.store, locks=locks, clock=clock).conduct_draw(
            "raffle-1", 500, 47
        )
        self.draw_id = self.result.draw_id
        self.service = VerificationService(self.store)

    def _tamper(self, **changes) -> None:
        self.store._audits[self.draw_id] = replace(self.store._audits[self.draw_id], **changes)

    def test_unmodified_record_verifies(self) -> None:
        self.assertTrue(self.service.verify("raffle-1", self.draw_id, 500, 47))
        self.assertTrue(self.service.verify_stored(self.draw_id))
        report = self.service.check("raffle-1", self.draw_id, 500, 47)
        self.assertEqual(report.failed_checks, [])

    def test_changed_parameters_fail(self) -> None:
        self.assertFalse(self.service.verify("raffle-1", self.draw_id, 501, 47))
        self.assertFalse(self.service.verify("raffle-1", self.draw_id, 500, 48))

    def test_impossible_parameters_fail(self) -> None:
        self.assertFalse(self.service.verify("raffle-1", self.draw_id, 0, 47))
        self.assertFalse(self.service.verify("raffle-1", self.draw_id, 500, -1))

    def test_any_private_seed_character_change_fails(self) -> None:
        original = self.store.get_audit(self.draw_id)
        for index in range(len(original.seed.private_seed)):
            tampered = replace(
                original.seed, private_seed=_flip(original.seed.private_seed, index)
            )
            self.store._audits[self.draw_id] = replace(original, seed=tampered)
            self.assertFalse(self.service.verify("raffle-1", self.draw_id, 500, 47), index)

    def test_public_seed_change_fails(self) -> None:
        original = self.store.get_audit(self.draw_id)
        tampered = replace(original.seed, public_seed=_flip(original.seed.public_seed, 0))
        self._tamper(seed=tampered)
        report = self.service.check("raffle-1", self.draw_id, 500, 47)
        self.assertFalse(report.verified)
        self.assertIn("seed_hash", report.failed_checks)

    def test_changed_result_fails(self) -> None:
        original = self.store.get_audit(self.draw_id)
        self._tamper(result=original.result % 500 + 1)
        self.assertFalse(self.service.verify("raffle-1", self.draw_id, 500, 47))

    def test_consistently_forged_entry_fails_commitment_check(self) -> None:
        original = self.store.get_audit(self.draw_id)
        forged_seed = replace(original.seed, private_seed="ee" * 32)
        final_hash = compute_final_hash(forged_seed, 500, 47)
        winner = derive_winning_ticket(final_hash, 500)
        self._tamper(
            seed=forged_seed,
            result=winner,
            final_hash=final_hash,
            proof=encode_proof(forged_seed, final_hash, winner, 500, 47),
            commitment_hash=seed_hash(forged_seed),
            verification=AuditVerification(
                seed_hash=seed_hash(forged_seed),
                result_hash=result_hash(winner, 500, 47),
            ),
        )

        report = self.service.check("raffle-1", self.draw_id, 500, 47)
        self.assertFalse(report.verified)
        self.assertEqual(report.failed_checks, ["commitment"])

    def test_wrong_raffle(self) -> None:
        with self.assertRaises(AuditRecordNotFound):
            self.service.verify("raffle-2", self.draw_id, 500, 47)

    def test_unknown_draw(self) -> None:
        with self.assertRaises(AuditRecordNotFound):
            self.service.verify("raffle-1", "draw_missing", 500, 47)

    def test_malformed_proof(self) -> None:
        self._tamper(proof="%%% not a proof %%%")
        with self.assertRaises(VerificationInputError):
            self.service.verify("raffle-1", self.draw_id, 500, 47)

    def test_wrong_parameter_types(self) -> None:
        with self.assertRaises(VerificationInputError):
            self.service.verify("raffle-1", self.draw_id, "500", 47)


class SqlVerificationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.store = SqlAlchemyDrawStore(get_sessionmaker(self.engine))
        clock = lambda: T0  # noqa: E731
        SeedCommitmentPublisher(self.store, clock=clock).publish(
            "raffle-1", T0 + timedelta(hours=1)
        )
        self.result = DrawEngine(self.store, clock=clock).conduct_draw("raffle-1", 500, 47)
        self.service = VerificationService(self.store)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_round_trip_through_database_verifies(self) -> None:
        self.assertTrue(self.service.verify("raffle-1", self.result.draw_id, 500, 47))

    def test_raw_sql_tampering_detected(self) -> None:
        # Core statements bypass the ORM guards, as a direct database edit would.
        entry = self.store.get_audit(self.result.draw_id)
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE draw_audit_logs SET private_seed = :seed WHERE draw_id = :draw_id"),
                {"seed": _flip(entry.seed.private_seed, 10), "draw_id": entry.draw_id},
            )
        self.assertFalse(self.service.verify("raffle-1", self.result.draw_id, 500, 47))

    def test_raw_sql_winner_change_detected(self) -> None:
        entry = self.store.get_audit(self.result.draw_id)
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    "UPDATE draw_audit_logs SET winning_ticket_number = :winner "
                    "WHERE draw_id = :draw_id"
                ),
                {"winner": entry.result % 500 + 1, "draw_id": entry.draw_id},
            )
        self.assertFalse(self.service.verify("raffle-1", self.result.draw_id, 500, 47))


if __name__ == "__main__":
    unittest.main()
