"""Initial schema for appeals, appeal events, payments, customer accounts, and jobs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "appeals",
        sa.Column("case_id", sa.Uuid(), primary_key=True, nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("owner_user_id", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("facts_json", sa.JSON(), nullable=False),
        sa.Column("ticket_json", sa.JSON(), nullable=False),
        sa.Column("contravention_category", sa.Text(), nullable=True),
        sa.Column("primary_defence_json", sa.JSON(), nullable=True),
        sa.Column("supporting_defences_json", sa.JSON(), nullable=True),
        sa.Column("general_defences_json", sa.JSON(), nullable=True),
        sa.Column("analyzed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("plan_type", sa.Text(), nullable=True),
        sa.Column("payment_reference", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("letter_text", sa.Text(), nullable=True),
        sa.Column("letter_analysis_json", sa.JSON(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('draft', 'analyzed', 'awaiting_payment', 'paid', 'generating', "
            "'completed')",
            name="ck_appeals_status",
        ),
        sa.CheckConstraint(
            "letter_text IS NULL OR status = 'completed'",
            name="ck_appeals_letter_only_when_completed",
        ),
    )
    op.create_index(
        "ix_appeals_owner_user_id_created_at",
        "appeals",
        ["owner_user_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_appeals_status", "appeals", ["status"], unique=False)

    op.create_table(
        "appeal_events",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=False),
        _timestamp("ts"),
        sa.Column("actor_type", sa.Text(), nullable=False),
        sa.Column("actor_user_id", sa.Text(), nullable=True),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    )
    op.create_index(
        "ix_appeal_events_case_id_ts",
        "appeal_events",
        ["case_id", "ts"],
        unique=False,
    )
    op.create_index(
        "ix_appeal_events_event_type_ts",
        "appeal_events",
        ["event_type", "ts"],
        unique=False,
    )

    op.create_table(
        "payments",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=False),
        sa.Column("idempotency_key", sa.Text(), nullable=False),
        sa.Column("provider_event_id", sa.Text(), nullable=True),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("plan_type", sa.Text(), nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "case_id",
            "idempotency_key",
            name="uq_payments_case_idempotency_key",
        ),
    )
    op.create_index("ix_payments_user_id", "payments", ["user_id"], unique=False)

    op.create_table(
        "customer_accounts",
        sa.Column("user_id", sa.Text(), primary_key=True, nullable=False),
        sa.Column("plan_type", sa.Text(), nullable=True),
        sa.Column("plan_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("appeals_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "jobs",
        sa.Column("job_id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=True),
        sa.Column("job_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'queued'")),
        _timestamp("run_after"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_jobs_status_run_after", "jobs", ["status", "run_after"], unique=False)
    op.create_index("ix_jobs_case_id", "jobs", ["case_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_jobs_case_id", table_name="jobs")
    op.drop_index("ix_jobs_status_run_after", table_name="jobs")
    op.drop_table("jobs")
    op.drop_table("customer_accounts")
    op.drop_index("ix_payments_user_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_appeal_events_event_type_ts", table_name="appeal_events")
    op.drop_index("ix_appeal_events_case_id_ts", table_name="appeal_events")
    op.drop_table("appeal_events")
    op.drop_index("ix_appeals_status", table_name="appeals")
    op.drop_index("ix_appeals_owner_user_id_created_at", table_name="appeals")
    op.drop_table("appeals")
