"""Pay stub service - builds, persists and reviews pay stubs."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from paystub_engine.calculators.money import ZERO
from paystub_engine.calculators.stub_builder import PayStubBuilder
from paystub_engine.calculators.types import (
    AllowanceInput,
    DeductionInput,
    EmployeeSnapshot,
    PayrollType,
    StubInputs,
)
from paystub_engine.config import Settings, get_settings
from paystub_engine.errors import ConflictError, NotFoundError, ValidationError
from paystub_engine.models import (
    Company,
    Employee,
    PayStub,
    PayStubAllowance,
    PayStubDeduction,
    PayStubLegalParameter,
)
from paystub_engine.services.legal_parameter_store import LegalParameterStore
from paystub_engine.services.payroll_run_service import PayrollRunService
from paystub_engine.services.state_machine import PayStubStateMachine, PayStubStatus

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from paystub_engine.calculators.types import PayStubFigures

logger = logging.getLogger(__name__)


@dataclass
class PayStubRequest:
    """Caller input for one pay stub."""

    employee_id: UUID | None
    pay_period: date | None
    base_salary: Decimal | None
    payment_date: date | None = None
    working_days: int | None = None  # defaults to settings.default_working_days
    days_worked: int | None = None  # defaults to working_days
    payroll_type: PayrollType = PayrollType.REGULAR
    sub_period: int = 1
    private_insurance: Decimal = ZERO
    deductions: list[DeductionInput] = field(default_factory=list)
    allowances: list[AllowanceInput] = field(default_factory=list)

    def to_inputs(self, default_working_days: int = 30) -> StubInputs:
        return StubInputs(
            pay_period=self.pay_period,
            base_salary=self.base_salary,
            working_days=default_working_days if self.working_days is None else self.working_days,
            days_worked=self.days_worked,
            payroll_type=PayrollType(self.payroll_type),
            private_insurance=self.private_insurance,
            deductions=list(self.deductions),
            allowances=list(self.allowances),
        )


def make_stub_number(employee_id: UUID, now: datetime) -> str:
    """PS-<employee prefix>-<epoch ms>-<random hex>."""
    epoch_ms = int(now.timestamp() * 1000)
    return f"PS-{employee_id.hex[:8]}-{epoch_ms}-{secrets.token_hex(2)}"


class PayStubService:
    """Service for pay stub generation and review.

    generate_pay_stub runs inside a savepoint: the run lookup, parameter
    resolution, stub insert and run recompute either all land or none do.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.builder = PayStubBuilder(isr_periods_per_year=self.settings.isr_periods_per_year)
        self.parameters = LegalParameterStore(session)
        self.runs = PayrollRunService(session, self.settings)

    async def generate_pay_stub(
        self,
        request: PayStubRequest,
        company_id: UUID | None = None,
        recompute: bool = True,
        now: datetime | None = None,
    ) -> PayStub:
        """Calculate and persist a DRAFT pay stub.

        Raises:
            ValidationError: Malformed input (checked before any lookup)
            NotFoundError: Unknown employee or company, or no social security rate
            ConfigurationError: Unusable legal parameters
            ConflictError: Duplicate stub or approved run
        """
        inputs = request.to_inputs(self.settings.default_working_days)
        PayStubBuilder.validate(request.employee_id, inputs)

        employee = await self.session.get(Employee, request.employee_id)
        if employee is None:
            raise NotFoundError("Employee", request.employee_id)
        if company_id is not None and employee.company_id != company_id:
            raise ValidationError(
                f"Employee {employee.employee_id} does not belong to company {company_id}",
                employee_id=str(employee.employee_id),
                company_id=str(company_id),
            )
        if await self.session.get(Company, employee.company_id) is None:
            raise NotFoundError("Company", employee.company_id)

        snapshot = EmployeeSnapshot(
            employee_id=employee.employee_id,
            company_id=employee.company_id,
            hire_date=employee.hire_date,
        )
        created_at = now or datetime.now(timezone.utc)

        try:
            async with self.session.begin_nested():
                stub = await self._create_stub(request, inputs, snapshot, created_at)
                if recompute:
                    await self.runs.recompute_totals(stub.payroll_run_id)
        except IntegrityError as exc:
            raise ConflictError(
                f"Pay stub already exists for employee {snapshot.employee_id} "
                f"period {inputs.pay_period} ({inputs.payroll_type.value})",
                employee_id=str(snapshot.employee_id),
                pay_period=str(inputs.pay_period),
                payroll_type=inputs.payroll_type.value,
            ) from exc

        logger.info(
            "Generated pay stub %s for employee %s period %s: gross=%s net=%s",
            stub.stub_number, snapshot.employee_id, inputs.pay_period,
            stub.gross_salary, stub.net_salary,
        )
        return stub

    async def _create_stub(
        self,
        request: PayStubRequest,
        inputs: StubInputs,
        employee: EmployeeSnapshot,
        created_at: datetime,
    ) -> PayStub:
        run = await self.runs.get_or_create_run(
            employee.company_id, inputs.pay_period, request.sub_period, inputs.payroll_type
        )
        # Held until commit so concurrent writers to this run sum in turn
        run = await self.runs.lock_run(run.payroll_run_id)
        await self.runs.ensure_accepts_stubs(run)

        parameters = await self.parameters.load_company_parameters(
            employee.company_id, inputs.pay_period
        )
        figures = self.builder.build(employee, inputs, parameters)

        stub = self._stub_from_figures(figures, request, inputs, employee, created_at)
        stub.payroll_run_id = run.payroll_run_id
        stub.deductions = [
            PayStubDeduction(
                deduction_type=d.type,
                description=d.description,
                amount=d.amount,
                is_fixed=d.is_fixed,
            )
            for d in inputs.deductions
        ]
        stub.allowances = [
            PayStubAllowance(
                allowance_type=a.type,
                description=a.description,
                amount=a.amount,
            )
            for a in inputs.allowances
        ]
        self.session.add(stub)
        await self.session.flush()

        for parameter_id in dict.fromkeys(parameters.parameter_ids):
            self.session.add(
                PayStubLegalParameter(
                    pay_stub_id=stub.pay_stub_id,
                    legal_parameter_id=parameter_id,
                )
            )
        await self.session.flush()
        return stub

    @staticmethod
    def _stub_from_figures(
        figures: PayStubFigures,
        request: PayStubRequest,
        inputs: StubInputs,
        employee: EmployeeSnapshot,
        created_at: datetime,
    ) -> PayStub:
        return PayStub(
            stub_number=make_stub_number(employee.employee_id, created_at),
            employee_id=employee.employee_id,
            company_id=employee.company_id,
            pay_period=inputs.pay_period,
            payment_date=request.payment_date or inputs.pay_period,
            payroll_type=inputs.payroll_type.value,
            working_days=figures.working_days,
            days_worked=figures.days_worked,
            base_salary=figures.base_salary,
            prorated_salary=figures.prorated_salary,
            total_allowances=figures.total_allowances,
            gross_salary=figures.gross_salary,
            income_tax=figures.income_tax,
            social_security=figures.social_security,
            educational_insurance=figures.educational_insurance,
            private_insurance=figures.private_insurance,
            other_deductions=figures.other_deductions,
            total_deductions=figures.total_deductions,
            net_salary=figures.net_salary,
            employer_contributions=figures.employer_contributions,
            bonus_amount=figures.bonus_amount,
            bonus_note=figures.bonus_note,
            status=PayStubStatus.DRAFT.value,
            created_at=created_at,
        )

    async def get_pay_stub(self, pay_stub_id: UUID) -> PayStub:
        stub = await self.session.get(PayStub, pay_stub_id)
        if stub is None:
            raise NotFoundError("PayStub", pay_stub_id)
        return stub

    async def list_pay_stubs(
        self,
        company_id: UUID | None = None,
        employee_id: UUID | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        payroll_run_id: UUID | None = None,
    ) -> list[PayStub]:
        query = select(PayStub)
        if company_id is not None:
            query = query.where(PayStub.company_id == company_id)
        if employee_id is not None:
            query = query.where(PayStub.employee_id == employee_id)
        if status:
            try:
                query = query.where(PayStub.status == PayStubStatus(status).value)
            except ValueError as exc:
                raise ValidationError(f"Unknown pay stub status {status!r}") from exc
        if start_date is not None:
            query = query.where(PayStub.pay_period >= start_date)
        if end_date is not None:
            query = query.where(PayStub.pay_period <= end_date)
        if payroll_run_id is not None:
            query = query.where(PayStub.payroll_run_id == payroll_run_id)
        query = query.order_by(PayStub.pay_period.desc(), PayStub.stub_number)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def approve_pay_stub(
        self,
        pay_stub_id: UUID,
        approved_by: str,
        comments: str | None = None,
        now: datetime | None = None,
    ) -> PayStub:
        """DRAFT → APPROVED. Freezes the legal parameters the stub used."""
        if not approved_by:
            raise ValidationError("approved_by is required")
        stub = await self.get_pay_stub(pay_stub_id)
        PayStubStateMachine.validate_transition(stub.status, PayStubStatus.APPROVED.value)

        stub.status = PayStubStatus.APPROVED.value
        stub.approved_by = approved_by
        stub.approval_date = now or datetime.now(timezone.utc)
        if comments is not None:
            stub.comments = comments
        await self._recompute_run(stub)

        logger.info("Approved pay stub %s by %s", stub.stub_number, approved_by)
        return stub

    async def reject_pay_stub(
        self,
        pay_stub_id: UUID,
        comments: str | None = None,
        now: datetime | None = None,
    ) -> PayStub:
        """DRAFT → REJECTED. The stub stays linked to its run."""
        stub = await self.get_pay_stub(pay_stub_id)
        PayStubStateMachine.validate_transition(stub.status, PayStubStatus.REJECTED.value)

        stub.status = PayStubStatus.REJECTED.value
        stub.approval_date = now or datetime.now(timezone.utc)
        if comments is not None:
            stub.comments = comments
        await self._recompute_run(stub)

        logger.info("Rejected pay stub %s", stub.stub_number)
        return stub

    async def _recompute_run(self, stub: PayStub) -> None:
        await self.session.flush()
        if stub.payroll_run_id is not None:
            await self.runs.recompute_totals(stub.payroll_run_id)
