from __future__ import annotations

import contextlib
import io
import json
import tempfile
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from fairdraw import workflows
from fairdraw.cli import main as cli_main
from fairdraw.config import Settings
from fairdraw.draw import DrawMethod
from fairdraw.entropy import EntropySource
from fairdraw.errors import AuditRecordNotFound, VerificationInputError
from fairdraw.storage import InMemoryDrawStore, SqlAlchemyDrawStore


class StaticProvider:
    source_identifier = "static"

    def fetch(self) -> str:
        return "cd" * 32


class DrawWorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = workflows.build_store(
            database_url="sqlite+pysqlite:///:memory:", create_tables=True
        )
        self.settings = Settings()

    def _publish_and_draw(self, raffle_id: str = "raffle-1"):
        workflows.publish_seed_commitment(
            self.store,
            raffle_id,
            datetime.now(timezone.utc) + timedelta(hours=1),
            settings=self.settings,
        )
        return workflows.run_draw(self.store, raffle_id, 500, 47)

    def test_build_store(self) -> None:
        self.assertIsInstance(self.store, SqlAlchemyDrawStore)

    def test_publish_uses_configured_entropy(self) -> None:
        commitment = workflows.publish_seed_commitment(
            self.store,
            "raffle-ext",
            datetime.now(timezone.utc) + timedelta(hours=1),
            settings=self.settings,
            entropy=EntropySource(external=StaticProvider()),
        )
        self.assertEqual(commitment.seed.method, DrawMethod.EXTERNAL)

    def test_verify_records_attestation(self) -> None:
        result = self._publish_and_draw()

        verified, view = workflows.verify_draw(
            self.store, "raffle-1", result.draw_id, verifier="auditor"
        )
        self.assertTrue(verified)
        self.assertTrue(view["isVerified"])
        attestations = self.store.list_verifications(result.draw_id)
        self.assertEqual(len(attestations), 1)
        self.assertEqual(attestations[0].verifier, "auditor")

        # verifiedAt stays at the first attestation.
        _, again = workflows.verify_draw(self.store, "raffle-1", result.draw_id)
        self.assertEqual(again["verifiedAt"], view["verifiedAt"])
        self.assertEqual(len(self.store.list_verifications(result.draw_id)), 1)

    def test_repeated_verification_records_one_attestation(self) -> None:
        store = InMemoryDrawStore()
        workflows.publish_seed_commitment(
            store, "raffle-1", datetime.now(timezone.utc) + timedelta(hours=1), settings=self.settings
        )
        result = workflows.run_draw(store, "raffle-1", 10, 2)

        for _ in range(100):
            verified, _ = workflows.verify_draw(store, "raffle-1", result.draw_id)
            self.assertTrue(verified)
        self.assertEqual(len(store.list_verifications(result.draw_id)), 1)

    def test_verify_wrong_raffle(self) -> None:
        result = self._publish_and_draw()
        with self.assertRaises(AuditRecordNotFound):
            workflows.verify_draw(self.store, "raffle-2", result.draw_id)

    def test_public_listing_is_sanitised(self) -> None:
        self._publish_and_draw("raffle-1")
        self._publish_and_draw("raffle-2")

        self.assertEqual(len(workflows.list_public_audits(self.store)), 2)
        audits = workflows.list_public_audits(self.store, "raffle-2")
        self.assertEqual(len(audits), 1)
        self.assertEqual(
            set(audits[0]),
            {
                "id",
                "raffleId",
                "drawMethod",
                "winningTicketNumber",
                "totalTickets",
                "participantCount",
                "seedHash",
                "timestamp",
                "isVerified",
                "verifiedAt",
                "proofAvailable",
            },
        )

    def test_draw_proof(self) -> None:
        result = self._publish_and_draw()
        proof = workflows.get_draw_proof(self.store, result.draw_id)
        self.assertEqual(proof["proof"], result.proof)
        self.assertEqual(proof["decoded"]["privateSeed"], result.seed.private_seed)

    def test_malformed_proof(self) -> None:
        store = InMemoryDrawStore()
        workflows.publish_seed_commitment(
            store, "raffle-1", datetime.now(timezone.utc) + timedelta(hours=1), settings=self.settings
        )
        result = workflows.run_draw(store, "raffle-1", 10, 2)
        store._audits[result.draw_id] = replace(store._audits[result.draw_id], proof="x")
        with self.assertRaises(VerificationInputError):
            workflows.get_draw_proof(store, result.draw_id)

    def test_compliance_report(self) -> None:
        self._publish_and_draw()
        report = workflows.generate_compliance_report(self.store, "raffle-1")
        self.assertTrue(report["summary"]["allVerified"])
        exported = json.loads(workflows.export_audit_log(self.store, "raffle-1"))
        self.assertEqual(exported["summary"]["totalDraws"], 1)


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_url = f"sqlite:///{Path(self._tmp.name) / 'cli.db'}"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with patch("fairdraw.cli.get_settings", return_value=Settings()):
            with contextlib.redirect_stdout(out):
                code = cli_main(["--db-url", self.db_url, "--create-tables", *argv])
        return code, out.getvalue()

    def test_publish_draw_verify_report(self) -> None:
        code, out = self._run("publish", "raffle-cli", "--in-minutes", "30")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["raffleId"], "raffle-cli")

        code, out = self._run("draw", "raffle-cli", "--tickets", "10", "--participants", "3")
        self.assertEqual(code, 0)
        draw = json.loads(out)
        self.assertTrue(1 <= draw["winningTicketNumber"] <= 10)

        code, out = self._run("verify", "raffle-cli", draw["drawId"])
        self.assertEqual(code, 0)
        self.assertIn("VERIFIED", out)

        report_path = Path(self._tmp.name) / "report.json"
        code, _ = self._run("report", "raffle-cli", "--out", str(report_path))
        self.assertEqual(code, 0)
        report = json.loads(report_path.read_text(encoding="utf-8"))
        self.assertEqual(report["summary"]["verifiedDraws"], 1)

        code, out = self._run("audits", "--raffle-id", "raffle-cli")
        self.assertEqual(code, 0)
        self.assertTrue(json.loads(out)[0]["isVerified"])

    def test_errors_exit_non_zero(self) -> None:
        code, _ = self._run("draw", "raffle-none", "--tickets", "10", "--participants", "3")
        self.assertEqual(code, 1)

    def test_malformed_draw_time_is_a_usage_error(self) -> None:
        err = io.StringIO()
        with contextlib.redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                self._run("publish", "raffle-cli", "--at", "next tuesday")
        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("not an ISO 8601 datetime", err.getvalue())

    def test_draw_time_accepts_zulu_suffix(self) -> None:
        when = (datetime.now(timezone.utc) + timedelta(hours=2)).replace(microsecond=0)
        code, out = self._run(
            "publish", "raffle-cli", "--at", when.strftime("%Y-%m-%dT%H:%M:%SZ")
        )
        self.assertEqual(code, 0)
        self.assertEqual(
            datetime.fromisoformat(json.loads(out)["drawScheduledAt"]), when
        )


if __name__ == "__main__":
    unittest.main()
