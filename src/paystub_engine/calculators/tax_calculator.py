"""Progressive income tax (ISR) from a piecewise bracket table."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from paystub_engine.calculators.money import ZERO, round_to_cents
from paystub_engine.calculators.types import IncomeTaxBracket, TaxBracket
from paystub_engine.errors import ConfigurationError

# Legal tables are often written with whole-unit ranges ("12,001 to 36,000").
# A gap of exactly one unit between a ceiling and the next floor is read as
# "over the previous ceiling".
INTEGER_RANGE_GAP = Decimal("1")


def normalize_brackets(brackets: Sequence[TaxBracket]) -> list[TaxBracket]:
    """Validate a bracket table and return it contiguous and open-ended.

    Rules:
    - at least one bracket, first floor at 0
    - no negative rate, no ceiling below its floor
    - each floor equals the previous ceiling, or the previous ceiling plus
      one whole unit (the floor is then moved down to the ceiling)
    - the last bracket has no ceiling ("and above"), whatever sentinel it had

    Raises:
        ConfigurationError: If the table overlaps, leaves gaps, or has bad rates
    """
    if not brackets:
        raise ConfigurationError("Income tax bracket table is empty")

    ordered = sorted(brackets, key=lambda b: b.min_amount)
    last_index = len(ordered) - 1

    if ordered[0].min_amount != ZERO:
        raise ConfigurationError(
            f"First income tax bracket must start at 0, got {ordered[0].min_amount}",
            min_amount=str(ordered[0].min_amount),
        )

    normalized: list[TaxBracket] = []
    previous_ceiling: Decimal | None = None

    for index, bracket in enumerate(ordered):
        if bracket.rate < 0:
            raise ConfigurationError(
                f"Negative tax rate {bracket.rate} in bracket starting at {bracket.min_amount}",
                rate=str(bracket.rate),
            )
        if bracket.max_amount is not None and bracket.max_amount < bracket.min_amount:
            raise ConfigurationError(
                f"Bracket ceiling {bracket.max_amount} is below its floor {bracket.min_amount}",
            )

        floor = bracket.min_amount
        if index > 0:
            if previous_ceiling is None:
                raise ConfigurationError(
                    f"Bracket starting at {floor} follows an open-ended bracket"
                )
            gap = floor - previous_ceiling
            if gap < 0:
                raise ConfigurationError(
                    f"Bracket starting at {floor} overlaps previous ceiling {previous_ceiling}",
                    floor=str(floor),
                    previous_ceiling=str(previous_ceiling),
                )
            if gap > INTEGER_RANGE_GAP:
                raise ConfigurationError(
                    f"Income between {previous_ceiling} and {floor} is not covered by any bracket",
                    floor=str(floor),
                    previous_ceiling=str(previous_ceiling),
                )
            floor = previous_ceiling

        ceiling = None if index == last_index else bracket.max_amount
        normalized.append(TaxBracket(min_amount=floor, max_amount=ceiling, rate=bracket.rate))
        previous_ceiling = ceiling

    return normalized


def validate_brackets(brackets: Sequence[TaxBracket]) -> None:
    """Raise ConfigurationError if the table cannot be used."""
    normalize_brackets(brackets)


def compute_income_tax(taxable_income: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Calculate tax using progressive brackets.

    Income above each floor up to that bracket's own ceiling is taxed at the
    bracket's rate. Income exactly at a ceiling is fully taxed inside that
    bracket; nothing spills into the next one. Non-positive income owes 0.
    """
    table = normalize_brackets(brackets)

    if taxable_income <= 0:
        return ZERO

    total_tax = ZERO
    for bracket in table:
        if taxable_income <= bracket.min_amount:
            break
        top = taxable_income
        if bracket.max_amount is not None:
            top = min(taxable_income, bracket.max_amount)
        total_tax += (top - bracket.min_amount) * bracket.rate

    return round_to_cents(total_tax)


def compute_period_income_tax(
    taxable_income: Decimal,
    brackets: Sequence[TaxBracket],
    periods_per_year: int = 1,
) -> Decimal:
    """Apply an annual table to a period's income.

    With ``periods_per_year`` of 1 the table is applied to the income as is.
    """
    if periods_per_year < 1:
        raise ConfigurationError(
            f"periods_per_year must be at least 1, got {periods_per_year}"
        )
    if periods_per_year == 1:
        return compute_income_tax(taxable_income, brackets)

    factor = Decimal(periods_per_year)
    annual_tax = compute_income_tax(taxable_income * factor, brackets)
    return round_to_cents(annual_tax / factor)


def brackets_from_parameters(rows: Iterable[IncomeTaxBracket]) -> list[TaxBracket]:
    """Build a bracket table from ISR legal parameters (percentages -> fractions)."""
    return [row.to_bracket() for row in rows]
