"""Pay stub builder - derives every amount on a stub."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from paystub_engine.calculators.bonus import compute_thirteenth_month
from paystub_engine.calculators.contribution import contribution_for
from paystub_engine.calculators.money import ZERO, round_to_cents, sum_amounts, to_decimal
from paystub_engine.calculators.tax_calculator import (
    brackets_from_parameters,
    compute_period_income_tax,
)
from paystub_engine.calculators.types import (
    CompanyParameters,
    EmployeeSnapshot,
    PayrollType,
    PayStubFigures,
    StubInputs,
)
from paystub_engine.errors import ConfigurationError, NotFoundError, ValidationError


class PayStubBuilder:
    """Builds the figures of one pay stub.

    Calculation pipeline (stable order):
    1) Validate inputs
    2) Prorate base salary by days worked
    3) Employee-side social security on the prorated salary
    4) Income tax on prorated salary minus social security
    5) Employee-side educational insurance, when configured
    6) Sum ad-hoc deductions and allowances
    7) Gross, total deductions, net
    8) Thirteenth-month bonus for THIRTEENTH_MONTH stubs
    9) Employer-side contributions (informational, never subtracted)

    Every computed field is rounded to cents exactly once.

    Total deductions are income tax, social security, private insurance and
    ad-hoc deductions, plus employee educational insurance whenever a rate for
    it is configured. Without that rate the stub matches the narrower
    definition; with it, net pay reflects the contribution actually withheld.
    """

    def __init__(self, isr_periods_per_year: int = 1):
        self.isr_periods_per_year = isr_periods_per_year

    def build(
        self,
        employee: EmployeeSnapshot,
        inputs: StubInputs,
        parameters: CompanyParameters,
    ) -> PayStubFigures:
        self.validate(employee.employee_id, inputs)

        base_salary = to_decimal(inputs.base_salary)
        working_days = inputs.working_days
        days_worked = inputs.effective_days_worked

        prorated = round_to_cents(base_salary / Decimal(working_days) * Decimal(days_worked))

        if parameters.social_security_employee is None:
            raise NotFoundError(
                "LegalParameter",
                "social_security/employee",
                f"No active employee social security rate for company {employee.company_id}",
            )
        social_security = contribution_for(prorated, parameters.social_security_employee)

        if not parameters.isr_brackets:
            raise ConfigurationError(
                f"No active income tax brackets for company {employee.company_id}",
                company_id=str(employee.company_id),
            )
        taxable_income = prorated - social_security
        income_tax = compute_period_income_tax(
            taxable_income,
            brackets_from_parameters(parameters.isr_brackets),
            self.isr_periods_per_year,
        )

        educational = contribution_for(prorated, parameters.educational_employee)

        other_deductions = round_to_cents(
            sum_amounts(to_decimal(d.amount) for d in inputs.deductions)
        )
        total_allowances = round_to_cents(
            sum_amounts(to_decimal(a.amount) for a in inputs.allowances)
        )
        private_insurance = round_to_cents(to_decimal(inputs.private_insurance))

        gross = prorated + total_allowances
        total_deductions = (
            income_tax + social_security + private_insurance + other_deductions + educational
        )
        net = gross - total_deductions

        employer_contributions = contribution_for(
            prorated, parameters.social_security_employer
        ) + contribution_for(prorated, parameters.educational_employer)

        bonus_amount = ZERO
        bonus_note = ""
        if inputs.payroll_type == PayrollType.THIRTEENTH_MONTH:
            bonus = compute_thirteenth_month(base_salary, employee.hire_date, inputs.pay_period)
            bonus_amount = bonus.amount
            bonus_note = bonus.note

        return PayStubFigures(
            base_salary=round_to_cents(base_salary),
            working_days=working_days,
            days_worked=days_worked,
            prorated_salary=prorated,
            total_allowances=total_allowances,
            gross_salary=gross,
            social_security=social_security,
            educational_insurance=educational,
            income_tax=income_tax,
            private_insurance=private_insurance,
            other_deductions=other_deductions,
            total_deductions=total_deductions,
            net_salary=net,
            employer_contributions=employer_contributions,
            bonus_amount=bonus_amount,
            bonus_note=bonus_note,
        )

    @staticmethod
    def validate(employee_id: UUID | None, inputs: StubInputs) -> None:
        """Raise ValidationError for missing or out-of-range inputs."""
        if employee_id is None:
            raise ValidationError("Employee is required")
        if inputs.pay_period is None:
            raise ValidationError("Pay period is required")
        if inputs.base_salary is None:
            raise ValidationError("Base salary is required")

        base_salary = to_decimal(inputs.base_salary)
        if base_salary < 0:
            raise ValidationError(
                f"Base salary must not be negative, got {base_salary}",
                base_salary=str(base_salary),
            )
        if inputs.working_days <= 0:
            raise ValidationError(
                f"Working days must be positive, got {inputs.working_days}",
                working_days=inputs.working_days,
            )
        days_worked = inputs.effective_days_worked
        if days_worked < 0 or days_worked > inputs.working_days:
            raise ValidationError(
                f"Days worked must be between 0 and {inputs.working_days}, got {days_worked}",
                days_worked=days_worked,
                working_days=inputs.working_days,
            )
        if to_decimal(inputs.private_insurance) < 0:
            raise ValidationError("Private insurance must not be negative")
        for deduction in inputs.deductions:
            if to_decimal(deduction.amount) < 0:
                raise ValidationError(
                    f"Deduction '{deduction.type}' has a negative amount",
                    type=deduction.type,
                )
        for allowance in inputs.allowances:
            if to_decimal(allowance.amount) < 0:
                raise ValidationError(
                    f"Allowance '{allowance.type}' has a negative amount",
                    type=allowance.type,
                )


def build_pay_stub(
    employee: EmployeeSnapshot,
    inputs: StubInputs,
    parameters: CompanyParameters,
    isr_periods_per_year: int = 1,
) -> PayStubFigures:
    """Compute a stub's figures with a one-off builder."""
    return PayStubBuilder(isr_periods_per_year).build(employee, inputs, parameters)
