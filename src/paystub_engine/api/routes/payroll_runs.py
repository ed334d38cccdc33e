"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from paystub_engine.api.dependencies import AppSettings, DbSession
from paystub_engine.api.schemas import (
    ErrorResponse,
    PayrollRunResponse,
    PayStubListResponse,
    PayStubResponse,
    RunApprovalRequest,
)
from paystub_engine.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    db: DbSession,
    settings: AppSettings,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a payroll run with its cached totals."""
    run = await PayrollRunService(db, settings).get_run(payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/{payroll_run_id}/stubs",
    response_model=PayStubListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_run_stubs(
    db: DbSession,
    settings: AppSettings,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayStubListResponse:
    """List every stub linked to a run."""
    service = PayrollRunService(db, settings)
    await service.get_run(payroll_run_id)
    stubs = await service.get_run_stubs(payroll_run_id)
    return PayStubListResponse(
        items=[PayStubResponse.model_validate(s) for s in stubs],
        total=len(stubs),
    )


@router.post(
    "/{payroll_run_id}/recompute",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def recompute_totals(
    db: DbSession,
    settings: AppSettings,
    payroll_run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Recompute a run's totals from its stubs."""
    run = await PayrollRunService(db, settings).recompute_totals(payroll_run_id)
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/approve",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_payroll_run(
    db: DbSession,
    settings: AppSettings,
    payroll_run_id: Annotated[UUID, Path()],
    payload: RunApprovalRequest,
) -> PayrollRunResponse:
    """Approve a DRAFT run once every stub has been reviewed."""
    run = await PayrollRunService(db, settings).approve_run(
        payroll_run_id, approved_by=payload.approved_by
    )
    return PayrollRunResponse.model_validate(run)
