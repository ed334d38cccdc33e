"""Payroll run service - run lifecycle and aggregate totals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Select, select

from paystub_engine.calculators.money import ZERO
from paystub_engine.calculators.types import PayrollType
from paystub_engine.database import dialect_insert
from paystub_engine.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from paystub_engine.models import Company, PayrollRun, PayStub
from paystub_engine.services.state_machine import PayrollRunStateMachine, PayrollRunStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from paystub_engine.config import Settings
    from paystub_engine.services.pay_stub_service import PayStubRequest

logger = logging.getLogger(__name__)


def normalize_period(period_date: date) -> date:
    """Map any day of a month to the first of that month."""
    return period_date.replace(day=1)


def run_lock_query(payroll_run_id: UUID) -> Select:
    """Select a run row under FOR NO KEY UPDATE.

    Writers that change a run's status or totals take this lock first, so
    their sums are serialized per run. The lock does not conflict with the
    KEY SHARE lock that pay stub foreign keys take on insert. SQLite ignores
    the clause; its writers are already serialized by the database lock.
    """
    return (
        select(PayrollRun)
        .where(PayrollRun.payroll_run_id == payroll_run_id)
        .with_for_update(key_share=True)
        .execution_options(populate_existing=True)
    )


@dataclass
class SkippedItem:
    """A batch item that was not turned into a stub."""

    index: int
    employee_id: UUID | None
    reason: str
    code: str


@dataclass
class BatchResult:
    """Outcome of generating a batch of stubs under one run."""

    run: PayrollRun
    created: list[PayStub] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


class PayrollRunService:
    """Service for payroll runs.

    Operations:
    - get_or_create_run: insert-or-get on the run key (unique constraint)
    - recompute_totals: full recompute over every stub linked to the run
    - approve_run: DRAFT → APPROVED (terminal)
    - generate_batch: one stub per input, best effort per item
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings

    async def get_run(self, payroll_run_id: UUID) -> PayrollRun:
        run = await self.session.get(PayrollRun, payroll_run_id)
        if run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        return run

    async def lock_run(self, payroll_run_id: UUID) -> PayrollRun:
        """Load a run under a row lock held until the transaction ends."""
        # populate_existing would drop unflushed changes on the run
        await self.session.flush()
        run = await self.session.scalar(run_lock_query(payroll_run_id))
        if run is None:
            raise NotFoundError("PayrollRun", payroll_run_id)
        return run

    async def get_or_create_run(
        self,
        company_id: UUID,
        period_date: date,
        sub_period: int = 1,
        payroll_type: PayrollType | str = PayrollType.REGULAR,
    ) -> PayrollRun:
        """Fetch the run for a key, creating it if absent.

        Uses INSERT ... ON CONFLICT DO NOTHING followed by a lookup, so two
        callers racing on the same key always end up with the same row.
        """
        if sub_period < 1:
            raise ValidationError(f"Sub-period must be positive, got {sub_period}")
        period = normalize_period(period_date)
        run_type = PayrollType(payroll_type).value

        stmt = (
            dialect_insert(self.session, PayrollRun)
            .values(
                company_id=company_id,
                period_date=period,
                sub_period=sub_period,
                payroll_type=run_type,
                status=PayrollRunStatus.DRAFT.value,
                total_gross=ZERO,
                total_deductions=ZERO,
                total_net=ZERO,
            )
            .on_conflict_do_nothing(
                index_elements=["company_id", "period_date", "sub_period", "payroll_type"]
            )
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.info(
                "Created payroll run for company %s period %s/%s (%s)",
                company_id, period.isoformat(), sub_period, run_type,
            )

        run = await self.session.scalar(
            select(PayrollRun).where(
                PayrollRun.company_id == company_id,
                PayrollRun.period_date == period,
                PayrollRun.sub_period == sub_period,
                PayrollRun.payroll_type == run_type,
            )
        )
        if run is None:
            raise NotFoundError(
                "PayrollRun",
                f"{company_id}/{period.isoformat()}/{sub_period}/{run_type}",
            )
        return run

    async def get_run_stubs(self, payroll_run_id: UUID) -> list[PayStub]:
        """All stubs linked to a run, whatever their status."""
        await self.session.flush()
        result = await self.session.execute(
            select(PayStub)
            .where(PayStub.payroll_run_id == payroll_run_id)
            .order_by(PayStub.created_at, PayStub.stub_number)
        )
        return list(result.scalars().all())

    async def recompute_totals(self, payroll_run_id: UUID) -> PayrollRun:
        """Overwrite the run's cached totals with sums over its stubs.

        Every linked stub counts, REJECTED ones included. Gross, deductions and
        net are summed independently. Running this twice without an
        intervening change yields the same totals.
        """
        run = await self.lock_run(payroll_run_id)
        stubs = await self.get_run_stubs(payroll_run_id)

        total_gross = ZERO
        total_deductions = ZERO
        total_net = ZERO
        for stub in stubs:
            total_gross += Decimal(stub.gross_salary)
            total_deductions += Decimal(stub.total_deductions)
            total_net += Decimal(stub.net_salary)

        run.total_gross = total_gross
        run.total_deductions = total_deductions
        run.total_net = total_net
        await self.session.flush()
        return run

    async def approve_run(
        self,
        payroll_run_id: UUID,
        approved_by: str,
        now: datetime | None = None,
    ) -> PayrollRun:
        """Approve a run. Terminal: the key never re-opens."""
        run = await self.lock_run(payroll_run_id)
        stubs = await self.get_run_stubs(payroll_run_id)

        errors = PayrollRunStateMachine.validate_run_for_approval(run, stubs)
        if errors:
            raise InvalidTransitionError(
                run.status, PayrollRunStatus.APPROVED.value, "; ".join(errors)
            )

        await self.recompute_totals(payroll_run_id)
        run.status = PayrollRunStatus.APPROVED.value
        run.approved_by = approved_by
        run.approved_at = now or datetime.now(timezone.utc)
        await self.session.flush()

        logger.info("Approved payroll run %s by %s", payroll_run_id, approved_by)
        return run

    async def ensure_accepts_stubs(self, run: PayrollRun) -> None:
        if not PayrollRunStateMachine.accepts_stubs(run.status):
            raise ConflictError(
                f"Payroll run {run.payroll_run_id} is {run.status}; "
                "corrections require a new run key",
                payroll_run_id=str(run.payroll_run_id),
            )

    async def generate_batch(
        self,
        company_id: UUID,
        period_date: date,
        items: list[PayStubRequest],
        sub_period: int = 1,
        payroll_type: PayrollType | str = PayrollType.REGULAR,
        now: datetime | None = None,
    ) -> BatchResult:
        """Build one run and one stub per item.

        Items that fail with NotFoundError, ValidationError or ConflictError are
        skipped and reported; a ConfigurationError means the company's legal
        parameters are unusable and aborts the whole batch.
        """
        # Import here to avoid circular imports
        from paystub_engine.services.pay_stub_service import PayStubService

        if await self.session.get(Company, company_id) is None:
            raise NotFoundError("Company", company_id)

        run_type = PayrollType(payroll_type)
        run = await self.get_or_create_run(company_id, period_date, sub_period, run_type)
        run = await self.lock_run(run.payroll_run_id)
        await self.ensure_accepts_stubs(run)

        stub_service = PayStubService(self.session, self.settings)
        result = BatchResult(run=run)
        month = normalize_period(period_date)

        for index, request in enumerate(items):
            item = replace(
                request,
                payroll_type=run_type,
                sub_period=sub_period,
                pay_period=request.pay_period or period_date,
            )
            try:
                if normalize_period(item.pay_period) != month:
                    raise ValidationError(
                        f"Pay period {item.pay_period} is outside batch month {month}"
                    )
                stub = await stub_service.generate_pay_stub(
                    item, company_id=company_id, now=now, recompute=False
                )
            except (NotFoundError, ValidationError, ConflictError) as exc:
                logger.warning(
                    "Skipped batch item %d (employee %s): %s", index, item.employee_id, exc
                )
                result.skipped.append(
                    SkippedItem(
                        index=index,
                        employee_id=item.employee_id,
                        reason=str(exc),
                        code=exc.code,
                    )
                )
                continue
            result.created.append(stub)

        result.run = await self.recompute_totals(run.payroll_run_id)
        logger.info(
            "Batch for run %s: %d created, %d skipped",
            run.payroll_run_id, result.created_count, result.skipped_count,
        )
        return result
