"""Type definitions for the pay stub calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID

from paystub_engine.calculators.money import ZERO


class PayrollType(str, Enum):
    """Kinds of payroll run."""

    REGULAR = "REGULAR"
    THIRTEENTH_MONTH = "THIRTEENTH_MONTH"
    VACATION = "VACATION"
    SETTLEMENT = "SETTLEMENT"


class ParameterCategory(str, Enum):
    """Legal parameter categories."""

    SOCIAL_SECURITY = "social_security"
    EDUCATIONAL_INSURANCE = "educational_insurance"
    ISR = "isr"
    OTHER = "other"


class ParameterType(str, Enum):
    """Which side a legal parameter applies to."""

    EMPLOYEE = "employee"
    EMPLOYER = "employer"
    FIXED = "fixed"


class ParameterStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


CONTRIBUTION_CATEGORIES = frozenset(
    {ParameterCategory.SOCIAL_SECURITY, ParameterCategory.EDUCATIONAL_INSURANCE}
)


@dataclass(frozen=True)
class TaxBracket:
    """Tax bracket for progressive taxation.

    ``rate`` is a fraction (0.15 for 15%). ``max_amount`` of None means no
    upper limit; on the last bracket any ceiling is read as "and above".
    """

    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal


# ===== Legal parameters (closed union) =====


@dataclass(frozen=True)
class ContributionRate:
    """Flat percentage contribution (social security, educational insurance)."""

    parameter_id: UUID
    key: str
    category: ParameterCategory
    side: ParameterType  # employee or employer
    percentage: Decimal
    effective_date: date


@dataclass(frozen=True)
class IncomeTaxBracket:
    """One row of the ISR bracket table."""

    parameter_id: UUID
    key: str
    min_range: Decimal
    max_range: Decimal | None
    percentage: Decimal
    effective_date: date

    def to_bracket(self) -> TaxBracket:
        return TaxBracket(
            min_amount=self.min_range,
            max_amount=self.max_range,
            rate=self.percentage / Decimal("100"),
        )


@dataclass(frozen=True)
class FixedParameter:
    """Any other rule (category ``other`` or type ``fixed``); not used in stub math."""

    parameter_id: UUID
    key: str
    category: ParameterCategory
    percentage: Decimal
    effective_date: date


TypedParameter = Union[ContributionRate, IncomeTaxBracket, FixedParameter]


@dataclass
class CompanyParameters:
    """Legal parameters in force for one company on one date."""

    social_security_employee: ContributionRate | None = None
    social_security_employer: ContributionRate | None = None
    educational_employee: ContributionRate | None = None
    educational_employer: ContributionRate | None = None
    isr_brackets: list[IncomeTaxBracket] = field(default_factory=list)

    @property
    def parameter_ids(self) -> list[UUID]:
        """IDs of every parameter that feeds a calculation."""
        ids = [
            rate.parameter_id
            for rate in (
                self.social_security_employee,
                self.social_security_employer,
                self.educational_employee,
                self.educational_employer,
            )
            if rate is not None
        ]
        ids.extend(b.parameter_id for b in self.isr_brackets)
        return ids


# ===== Stub inputs and outputs =====


@dataclass(frozen=True)
class DeductionInput:
    """Ad-hoc deduction supplied with a stub request."""

    amount: Decimal
    type: str = "OTHER"
    description: str | None = None
    is_fixed: bool = False


@dataclass(frozen=True)
class AllowanceInput:
    """Ad-hoc allowance supplied with a stub request."""

    amount: Decimal
    type: str = "OTHER"
    description: str | None = None


@dataclass(frozen=True)
class EmployeeSnapshot:
    """Read-only view of the employee fields the builder needs."""

    employee_id: UUID
    company_id: UUID
    hire_date: date | None = None


@dataclass
class StubInputs:
    """Raw inputs for one pay stub."""

    pay_period: date | None
    base_salary: Decimal | None
    working_days: int = 30
    days_worked: int | None = None  # defaults to working_days
    payroll_type: PayrollType = PayrollType.REGULAR
    private_insurance: Decimal = ZERO
    deductions: list[DeductionInput] = field(default_factory=list)
    allowances: list[AllowanceInput] = field(default_factory=list)

    @property
    def effective_days_worked(self) -> int:
        return self.working_days if self.days_worked is None else self.days_worked


@dataclass(frozen=True)
class BonusResult:
    """Thirteenth-month bonus and how it was derived."""

    amount: Decimal
    months: int
    note: str


@dataclass(frozen=True)
class PayStubFigures:
    """Every computed amount on a pay stub, already rounded to cents."""

    base_salary: Decimal
    working_days: int
    days_worked: int
    prorated_salary: Decimal
    total_allowances: Decimal
    gross_salary: Decimal
    social_security: Decimal
    educational_insurance: Decimal
    income_tax: Decimal
    private_insurance: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    employer_contributions: Decimal
    bonus_amount: Decimal = ZERO
    bonus_note: str = ""
