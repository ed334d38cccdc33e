"""Pay stub calculation engine."""

from paystub_engine.calculators.bonus import compute_thirteenth_month
from paystub_engine.calculators.contribution import compute_flat_contribution
from paystub_engine.calculators.stub_builder import PayStubBuilder, build_pay_stub
from paystub_engine.calculators.tax_calculator import (
    compute_income_tax,
    normalize_brackets,
    validate_brackets,
)

__all__ = [
    "PayStubBuilder",
    "build_pay_stub",
    "compute_flat_contribution",
    "compute_income_tax",
    "compute_thirteenth_month",
    "normalize_brackets",
    "validate_brackets",
]
