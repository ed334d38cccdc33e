"""API routes."""

from paystub_engine.api.routes.health import router as health_router
from paystub_engine.api.routes.legal_parameters import router as legal_parameters_router
from paystub_engine.api.routes.pay_stubs import router as pay_stubs_router
from paystub_engine.api.routes.payroll_runs import router as payroll_runs_router

__all__ = [
    "health_router",
    "legal_parameters_router",
    "pay_stubs_router",
    "payroll_runs_router",
]
