"""Flat-percentage social contributions."""

from __future__ import annotations

from decimal import Decimal

from paystub_engine.calculators.money import HUNDRED, ZERO, round_to_cents
from paystub_engine.calculators.types import ContributionRate
from paystub_engine.errors import ConfigurationError


def compute_flat_contribution(base: Decimal, percentage: Decimal) -> Decimal:
    """Return ``base * percentage / 100`` rounded half-up to cents.

    A non-positive base contributes nothing.
    """
    if percentage < 0:
        raise ConfigurationError(f"Negative contribution percentage {percentage}")
    if base <= 0:
        return ZERO
    return round_to_cents(base * percentage / HUNDRED)


def contribution_for(base: Decimal, rate: ContributionRate | None) -> Decimal:
    """Apply an optional contribution rate; an absent rate contributes 0."""
    if rate is None:
        return ZERO
    return compute_flat_contribution(base, rate.percentage)
