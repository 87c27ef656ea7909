"""SQLAlchemy metadata definitions for appeal automation tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

appeals = sa.Table(
    "appeals",
    metadata,
    sa.Column("case_id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
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
        "status IN ('draft', 'analyzed', 'awaiting_payment', 'paid', 'generating', 'completed')",
        name="ck_appeals_status",
    ),
    sa.CheckConstraint(
        "letter_text IS NULL OR status = 'completed'",
        name="ck_appeals_letter_only_when_completed",
    ),
)

sa.Index("ix_appeals_owner_user_id_created_at", appeals.c.owner_user_id, appeals.c.created_at)
sa.Index("ix_appeals_status", appeals.c.status)

appeal_events = sa.Table(
    "appeal_events",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=False),
    sa.Column(
        "ts",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("actor_type", sa.Text(), nullable=False),
    sa.Column("actor_user_id", sa.Text(), nullable=True),
    sa.Column("event_type", sa.Text(), nullable=False),
    sa.Column("payload", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
)

sa.Index("ix_appeal_events_case_id_ts", appeal_events.c.case_id, appeal_events.c.ts)
sa.Index("ix_appeal_events_event_type_ts", appeal_events.c.event_type, appeal_events.c.ts)

payments = sa.Table(
    "payments",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=False),
    sa.Column("idempotency_key", sa.Text(), nullable=False),
    sa.Column("provider_event_id", sa.Text(), nullable=True),
    sa.Column("event_type", sa.Text(), nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("plan_type", sa.Text(), nullable=False),
    sa.Column("amount_minor", sa.Integer(), nullable=False),
    sa.Column("currency", sa.Text(), nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("case_id", "idempotency_key", name="uq_payments_case_idempotency_key"),
)

sa.Index("ix_payments_user_id", payments.c.user_id)

customer_accounts = sa.Table(
    "customer_accounts",
    metadata,
    sa.Column("user_id", sa.Text(), primary_key=True, nullable=False),
    sa.Column("plan_type", sa.Text(), nullable=True),
    sa.Column("plan_expires_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("appeals_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

jobs = sa.Table(
    "jobs",
    metadata,
    sa.Column("job_id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("case_id", sa.Uuid(), sa.ForeignKey("appeals.case_id"), nullable=True),
    sa.Column("job_type", sa.Text(), nullable=False),
    sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'queued'")),
    sa.Column(
        "run_after",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
    sa.Column("max_attempts", sa.Integer(), nullable=False, server_default=sa.text("5")),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
)

sa.Index("ix_jobs_status_run_after", jobs.c.status, jobs.c.run_after)
sa.Index("ix_jobs_case_id", jobs.c.case_id)
