"""SQLAlchemy adapter for appeal repository operations."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import CursorResult, RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appeal_automation.application.ports.appeal_repository_port import (
    AppealAnalysisUpdateInput,
    AppealCreateInput,
    AppealFactsUpdateInput,
    AppealRecord,
    AppealRepositoryPort,
    CustomerAccountRecord,
    PaymentApplyOutcome,
    PaymentApplyResult,
    PaymentConfirmationInput,
)
from appeal_automation.domain.appeal_status import PAID_OR_LATER, AppealStatus
from appeal_automation.domain.plans import PlanType, extend_subscription
from appeal_automation.infrastructure.db.metadata import appeals, customer_accounts, payments

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive values for timezone-aware columns.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _as_uuid(value: object) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _to_appeal_record(row: RowMapping) -> AppealRecord:
    return AppealRecord(
        case_id=_as_uuid(row["case_id"]),
        owner_user_id=cast(str, row["owner_user_id"]),
        status=AppealStatus(cast(str, row["status"])),
        version=int(row["version"]),
        facts=cast(dict[str, Any], row["facts_json"]),
        ticket=cast(dict[str, Any], row["ticket_json"]),
        created_at=cast(datetime, _as_utc(row["created_at"])),
        updated_at=cast(datetime, _as_utc(row["updated_at"])),
        contravention_category=cast(str | None, row["contravention_category"]),
        primary_defence=cast(dict[str, Any] | None, row["primary_defence_json"]),
        supporting_defences=cast(list[dict[str, Any]] | None, row["supporting_defences_json"]),
        general_defences=cast(list[str] | None, row["general_defences_json"]),
        plan_type=cast(str | None, row["plan_type"]),
        payment_reference=cast(str | None, row["payment_reference"]),
        paid_at=_as_utc(row["paid_at"]),
        letter_text=cast(str | None, row["letter_text"]),
        letter_analysis=cast(dict[str, Any] | None, row["letter_analysis_json"]),
        completed_at=_as_utc(row["completed_at"]),
    )


def _bumped(**values: Any) -> dict[str, Any]:
    """Attach version increment and touch timestamp to an update value set."""

    return {
        **values,
        "version": appeals.c.version + 1,
        "updated_at": sa.func.current_timestamp(),
    }


class SqlAlchemyAppealRepository(AppealRepositoryPort):
    """Appeal repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_appeal(self, payload: AppealCreateInput) -> AppealRecord:
        """Insert a new draft appeal row and return the created record."""

        statement = (
            sa.insert(appeals)
            .values(
                case_id=payload.case_id,
                owner_user_id=payload.owner_user_id,
                status=AppealStatus.DRAFT.value,
                version=1,
                facts_json=payload.facts,
                ticket_json=payload.ticket,
            )
            .returning(*appeals.c)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        return _to_appeal_record(result.mappings().one())

    async def get_appeal(self, *, case_id: UUID) -> AppealRecord | None:
        statement = sa.select(appeals).where(appeals.c.case_id == case_id)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_appeal_record(row)

    async def list_appeals(self, *, owner_user_id: str) -> list[AppealRecord]:
        statement = (
            sa.select(appeals)
            .where(appeals.c.owner_user_id == owner_user_id)
            .order_by(appeals.c.created_at.desc(), appeals.c.case_id)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_appeal_record(row) for row in result.mappings().all()]

    async def update_draft_facts(self, payload: AppealFactsUpdateInput) -> bool:
        """Replace facts only when the case is still draft at the expected version."""

        values: dict[str, Any] = {"facts_json": payload.facts}
        if payload.ticket is not None:
            values["ticket_json"] = payload.ticket
        statement = (
            sa.update(appeals)
            .where(
                appeals.c.case_id == payload.case_id,
                appeals.c.status == AppealStatus.DRAFT.value,
                appeals.c.version == payload.expected_version,
            )
            .values(**_bumped(**values))
        )
        return await self._execute_compare_and_set(statement)

    async def record_analysis_if_draft(self, payload: AppealAnalysisUpdateInput) -> bool:
        """Store ranked defences when the draft has not changed since it was read."""

        statement = (
            sa.update(appeals)
            .where(
                appeals.c.case_id == payload.case_id,
                appeals.c.status == AppealStatus.DRAFT.value,
                appeals.c.version == payload.expected_version,
            )
            .values(
                **_bumped(
                    status=AppealStatus.ANALYZED.value,
                    contravention_category=payload.contravention_category,
                    primary_defence_json=payload.primary_defence,
                    supporting_defences_json=payload.supporting_defences,
                    general_defences_json=payload.general_defences,
                    analyzed_at=sa.func.current_timestamp(),
                )
            )
        )
        return await self._execute_compare_and_set(statement)

    async def open_payment_window_if_analyzed(self, *, case_id: UUID) -> bool:
        return await self._move_status(
            case_id=case_id,
            from_status=AppealStatus.ANALYZED,
            to_status=AppealStatus.AWAITING_PAYMENT,
        )

    async def apply_payment_confirmation(
        self,
        payload: PaymentConfirmationInput,
    ) -> PaymentApplyResult:
        """Apply one payment atomically: status CAS, ledger key and plan bookkeeping."""

        # The status UPDATE runs first so the transaction takes the write lock up front.
        paid_statement = (
            sa.update(appeals)
            .where(
                appeals.c.case_id == payload.case_id,
                appeals.c.status == AppealStatus.AWAITING_PAYMENT.value,
            )
            .values(
                **_bumped(
                    status=AppealStatus.PAID.value,
                    plan_type=payload.plan_type.value,
                    payment_reference=payload.idempotency_key,
                    paid_at=sa.func.current_timestamp(),
                )
            )
            .returning(appeals.c.owner_user_id)
        )

        async with self._session_factory() as session:
            result = await session.execute(paid_statement)
            owner_user_id = result.scalar_one_or_none()
            if owner_user_id is None:
                await session.rollback()
                return await self._classify_unapplied_payment(session, payload)

            try:
                await session.execute(
                    sa.insert(payments).values(
                        case_id=payload.case_id,
                        idempotency_key=payload.idempotency_key,
                        provider_event_id=payload.provider_event_id,
                        event_type=payload.event_type,
                        user_id=owner_user_id,
                        plan_type=payload.plan_type.value,
                        amount_minor=payload.amount_minor,
                        currency=payload.currency,
                    )
                )
            except IntegrityError:
                await session.rollback()
                return PaymentApplyResult(outcome=PaymentApplyOutcome.DUPLICATE)

            await self._apply_plan_bookkeeping(
                session,
                user_id=cast(str, owner_user_id),
                plan_type=payload.plan_type,
            )
            await session.commit()

        return PaymentApplyResult(
            outcome=PaymentApplyOutcome.APPLIED,
            status=AppealStatus.PAID,
            owner_user_id=cast(str, owner_user_id),
        )

    async def claim_generation_if_paid(self, *, case_id: UUID) -> bool:
        return await self._move_status(
            case_id=case_id,
            from_status=AppealStatus.PAID,
            to_status=AppealStatus.GENERATING,
        )

    async def complete_generation_if_generating(
        self,
        *,
        case_id: UUID,
        letter_text: str,
        letter_analysis: dict[str, Any] | None,
    ) -> bool:
        statement = (
            sa.update(appeals)
            .where(
                appeals.c.case_id == case_id,
                appeals.c.status == AppealStatus.GENERATING.value,
            )
            .values(
                **_bumped(
                    status=AppealStatus.COMPLETED.value,
                    letter_text=letter_text,
                    letter_analysis_json=letter_analysis,
                    completed_at=sa.func.current_timestamp(),
                )
            )
        )
        return await self._execute_compare_and_set(statement)

    async def release_generation_if_generating(self, *, case_id: UUID) -> bool:
        return await self._move_status(
            case_id=case_id,
            from_status=AppealStatus.GENERATING,
            to_status=AppealStatus.PAID,
        )

    async def get_customer_account(self, *, user_id: str) -> CustomerAccountRecord | None:
        statement = sa.select(customer_accounts).where(customer_accounts.c.user_id == user_id)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return CustomerAccountRecord(
            user_id=cast(str, row["user_id"]),
            plan_type=cast(str | None, row["plan_type"]),
            plan_expires_at=_as_utc(row["plan_expires_at"]),
            appeals_used=int(row["appeals_used"]),
        )

    async def _move_status(
        self,
        *,
        case_id: UUID,
        from_status: AppealStatus,
        to_status: AppealStatus,
    ) -> bool:
        statement = (
            sa.update(appeals)
            .where(
                appeals.c.case_id == case_id,
                appeals.c.status == from_status.value,
            )
            .values(**_bumped(status=to_status.value))
        )
        return await self._execute_compare_and_set(statement)

    async def _execute_compare_and_set(self, statement: sa.Update) -> bool:
        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) == 1

    async def _classify_unapplied_payment(
        self,
        session: AsyncSession,
        payload: PaymentConfirmationInput,
    ) -> PaymentApplyResult:
        status_row = (
            await session.execute(
                sa.select(appeals.c.status, appeals.c.owner_user_id).where(
                    appeals.c.case_id == payload.case_id
                )
            )
        ).mappings().first()
        if status_row is None:
            return PaymentApplyResult(outcome=PaymentApplyOutcome.NOT_FOUND)

        status = AppealStatus(cast(str, status_row["status"]))
        owner_user_id = cast(str, status_row["owner_user_id"])
        key_seen = (
            await session.execute(
                sa.select(sa.literal(True))
                .where(
                    payments.c.case_id == payload.case_id,
                    payments.c.idempotency_key == payload.idempotency_key,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        await session.rollback()

        if key_seen:
            outcome = PaymentApplyOutcome.DUPLICATE
        elif status in PAID_OR_LATER:
            outcome = PaymentApplyOutcome.ALREADY_PAID
        else:
            outcome = PaymentApplyOutcome.WRONG_STATE
        return PaymentApplyResult(outcome=outcome, status=status, owner_user_id=owner_user_id)

    async def _apply_plan_bookkeeping(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        plan_type: PlanType,
    ) -> None:
        # Payments for different cases of one user serialize on the account row lock.
        dialect_name = session.get_bind().dialect.name
        await session.execute(insert_account_if_absent(dialect_name, user_id=user_id))
        account = (
            await session.execute(lock_account_statement(user_id=user_id))
        ).mappings().one()

        if plan_type is PlanType.ANNUAL:
            values: dict[str, Any] = {
                "plan_type": "subscriber",
                "plan_expires_at": extend_subscription(
                    current_expiry=_as_utc(account["plan_expires_at"]),
                    now=datetime.now(tz=UTC),
                ),
            }
        else:
            values = {
                "plan_type": "single_use",
                "appeals_used": customer_accounts.c.appeals_used + 1,
            }

        await session.execute(
            sa.update(customer_accounts)
            .where(customer_accounts.c.user_id == user_id)
            .values(updated_at=sa.func.current_timestamp(), **values)
        )
        logger.debug("customer_account_updated user_id=%s plan_type=%s", user_id, plan_type)


def insert_account_if_absent(dialect_name: str, *, user_id: str) -> sa.Insert:
    """Create an empty customer account unless one already exists."""

    if dialect_name == "postgresql":
        return (
            postgresql.insert(customer_accounts)
            .values(user_id=user_id, appeals_used=0)
            .on_conflict_do_nothing(index_elements=[customer_accounts.c.user_id])
        )
    return (
        sqlite.insert(customer_accounts)
        .values(user_id=user_id, appeals_used=0)
        .on_conflict_do_nothing(index_elements=[customer_accounts.c.user_id])
    )


def lock_account_statement(*, user_id: str) -> sa.Select[Any]:
    """Select the account row under a write lock; SQLite omits FOR UPDATE."""

    return (
        sa.select(customer_accounts.c.plan_expires_at, customer_accounts.c.appeals_used)
        .where(customer_accounts.c.user_id == user_id)
        .with_for_update()
    )
