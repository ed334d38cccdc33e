"""Paystub engine services."""

from paystub_engine.services.legal_parameter_store import LegalParameterStore
from paystub_engine.services.pay_stub_service import PayStubRequest, PayStubService
from paystub_engine.services.payroll_run_service import BatchResult, PayrollRunService
from paystub_engine.services.state_machine import (
    PayrollRunStateMachine,
    PayrollRunStatus,
    PayStubStateMachine,
    PayStubStatus,
)

__all__ = [
    "BatchResult",
    "LegalParameterStore",
    "PayStubRequest",
    "PayStubService",
    "PayStubStateMachine",
    "PayStubStatus",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
]
