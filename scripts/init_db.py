from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select

from fairdraw.db.engine import get_sessionmaker, make_engine
from fairdraw.models import DrawAuditRecord, SeedCommitmentRecord

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DRAW_TABLES = ("seed_commitments", "draw_audit_logs", "draw_verifications")


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report_schema() -> int:
    """Print the draw tables and their row counts; non-zero if one is missing."""
    engine = make_engine()
    tables = set(inspect(engine).get_table_names())
    missing = [name for name in DRAW_TABLES if name not in tables]
    if missing:
        print("Missing tables:", ", ".join(missing))
        return 1

    Session = get_sessionmaker(engine)
    with Session() as session:
        commitments = session.scalar(select(func.count()).select_from(SeedCommitmentRecord))
        audits = session.scalar(select(func.count()).select_from(DrawAuditRecord))
    print("Current tables:", ", ".join(sorted(tables)))
    print(f"Commitments: {commitments}, logged draws: {audits}")
    return 0


def main() -> int:
    """Apply migrations (default to head) and report the resulting schema."""
    parser = argparse.ArgumentParser(description="Migrate the fairdraw database.")
    parser.add_argument("--revision", default="head", help="Target Alembic revision.")
    args = parser.parse_args()

    upgrade_db(args.revision)
    return report_schema()


if __name__ == "__main__":
    raise SystemExit(main())
