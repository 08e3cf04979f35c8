"""seed commitments, draw audit log and verifications

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "seed_commitments",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("raffle_id", sa.String(length=100), nullable=False),
        sa.Column("commitment_hash", sa.String(length=64), nullable=False),
        sa.Column("seed_json", sa.Text(), nullable=False),
        sa.Column("scheduled_draw_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("draw_id", sa.String(length=64), nullable=True),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','consumed','voided','expired')",
            name=op.f("ck_seed_commitments_status_enum"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_seed_commitments")),
    )
    op.create_index(
        op.f("ix_seed_commitments_raffle_id"), "seed_commitments", ["raffle_id"]
    )
    op.create_index(
        "ix_seed_commitments_raffle_status", "seed_commitments", ["raffle_id", "status"]
    )
    op.create_index(
        "uq_seed_commitments_pending_raffle",
        "seed_commitments",
        ["raffle_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "draw_audit_logs",
        sa.Column("draw_id", sa.String(length=64), nullable=False),
        sa.Column("raffle_id", sa.String(length=100), nullable=False),
        sa.Column("commitment_id", ID_TYPE, nullable=True),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("public_seed", sa.String(length=255), nullable=False),
        sa.Column("private_seed", sa.String(length=255), nullable=False),
        sa.Column("seed_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("external_entropy", sa.String(length=255), nullable=True),
        sa.Column("winning_ticket_number", sa.BigInteger(), nullable=False),
        sa.Column("total_tickets", sa.BigInteger(), nullable=False),
        sa.Column("participant_count", sa.BigInteger(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("seed_hash", sa.String(length=64), nullable=False),
        sa.Column("result_hash", sa.String(length=64), nullable=False),
        sa.Column("final_hash", sa.String(length=64), nullable=False),
        sa.Column("commitment_hash", sa.String(length=64), nullable=True),
        sa.Column("proof", sa.Text(), nullable=False),
        sa.Column("video_url", sa.String(length=512), nullable=True),
        sa.Column("witness_signature", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "method IN ('crypto','external')", name=op.f("ck_draw_audit_logs_method_enum")
        ),
        sa.CheckConstraint(
            "total_tickets >= 1", name=op.f("ck_draw_audit_logs_total_tickets_positive")
        ),
        sa.CheckConstraint(
            "participant_count >= 0",
            name=op.f("ck_draw_audit_logs_participant_count_nonneg"),
        ),
        sa.ForeignKeyConstraint(
            ["commitment_id"],
            ["seed_commitments.id"],
            name=op.f("fk_draw_audit_logs_commitment_id_seed_commitments"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("draw_id", name=op.f("pk_draw_audit_logs")),
    )
    op.create_index(
        op.f("ix_draw_audit_logs_raffle_id"), "draw_audit_logs", ["raffle_id"]
    )
    op.create_index("ix_draw_audit_logs_timestamp", "draw_audit_logs", ["timestamp"])

    op.create_table(
        "draw_verifications",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("draw_id", sa.String(length=64), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verifier", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(
            ["draw_id"],
            ["draw_audit_logs.draw_id"],
            name=op.f("fk_draw_verifications_draw_id_draw_audit_logs"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_draw_verifications")),
    )
    op.create_index(
        op.f("ix_draw_verifications_draw_id"), "draw_verifications", ["draw_id"]
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_draw_verifications_draw_id"), table_name="draw_verifications")
    op.drop_table("draw_verifications")
    op.drop_index("ix_draw_audit_logs_timestamp", table_name="draw_audit_logs")
    op.drop_index(op.f("ix_draw_audit_logs_raffle_id"), table_name="draw_audit_logs")
    op.drop_table("draw_audit_logs")
    op.drop_index("uq_seed_commitments_pending_raffle", table_name="seed_commitments")
    op.drop_index("ix_seed_commitments_raffle_status", table_name="seed_commitments")
    op.drop_index(op.f("ix_seed_commitments_raffle_id"), table_name="seed_commitments")
    op.drop_table("seed_commitments")
