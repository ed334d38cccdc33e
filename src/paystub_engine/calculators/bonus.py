"""Thirteenth-month bonus proration."""

from __future__ import annotations

import math
from datetime import date
from decimal import Decimal

from paystub_engine.calculators.money import ZERO, round_to_cents
from paystub_engine.calculators.types import BonusResult

MONTHS_PER_YEAR = 12
DAYS_PER_MONTH = 30


def months_worked_in_year(hire_date: date, year: int) -> int:
    """Whole months from ``hire_date`` to December 31 of ``year``.

    Approximation: ceil(day span / 30), capped at 12. Not a calendar-exact
    month count.
    """
    end_of_year = date(year, 12, 31)
    span_days = (end_of_year - hire_date).days
    if span_days <= 0:
        return 0
    return min(MONTHS_PER_YEAR, math.ceil(span_days / DAYS_PER_MONTH))


def compute_thirteenth_month(
    base_salary: Decimal,
    hire_date: date | None,
    evaluation_date: date,
) -> BonusResult:
    """Compute the thirteenth-month bonus for the year of ``evaluation_date``.

    The evaluation date is passed in explicitly (the stub's pay period) so the
    result never depends on the wall clock.
    """
    year = evaluation_date.year

    if hire_date is None or hire_date.year < year:
        return BonusResult(
            amount=round_to_cents(base_salary),
            months=MONTHS_PER_YEAR,
            note=f"Full thirteenth month: {MONTHS_PER_YEAR} months worked in {year}",
        )

    if hire_date.year > year:
        return BonusResult(
            amount=ZERO,
            months=0,
            note=f"No thirteenth month: hired on {hire_date.isoformat()}, after {year}",
        )

    months = months_worked_in_year(hire_date, year)
    amount = round_to_cents(base_salary * Decimal(months) / Decimal(MONTHS_PER_YEAR))
    return BonusResult(
        amount=amount,
        months=months,
        note=(
            f"Prorated thirteenth month: {months} months worked in {year} "
            f"(hired {hire_date.isoformat()})"
        ),
    )
