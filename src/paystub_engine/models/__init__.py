"""ORM models."""

from paystub_engine.models.base import Base, TimestampMixin
from paystub_engine.models.company import Company, Employee
from paystub_engine.models.legal_parameter import LegalParameter
from paystub_engine.models.payroll import (
    PayrollRun,
    PayStub,
    PayStubAllowance,
    PayStubDeduction,
    PayStubLegalParameter,
)

__all__ = [
    "Base",
    "Company",
    "Employee",
    "LegalParameter",
    "PayStub",
    "PayStubAllowance",
    "PayStubDeduction",
    "PayStubLegalParameter",
    "PayrollRun",
    "TimestampMixin",
]
