"""Pay stub API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from paystub_engine.api.dependencies import AppSettings, DbSession
from paystub_engine.api.schemas import (
    ApprovalRequest,
    BatchResponse,
    ErrorResponse,
    PayrollRunResponse,
    PayStubBatchCreate,
    PayStubCreate,
    PayStubListResponse,
    PayStubResponse,
    RejectionRequest,
    SkippedItemResponse,
)
from paystub_engine.services.pay_stub_service import PayStubService
from paystub_engine.services.payroll_run_service import PayrollRunService

router = APIRouter(prefix="/pay-stubs", tags=["pay-stubs"])


# ============================================================================
# Generation
# ============================================================================


@router.post(
    "",
    response_model=PayStubResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def generate_pay_stub(
    db: DbSession,
    settings: AppSettings,
    payload: PayStubCreate,
) -> PayStubResponse:
    """Calculate a pay stub and store it as DRAFT under its payroll run."""
    service = PayStubService(db, settings)
    stub = await service.generate_pay_stub(payload.to_request())
    return PayStubResponse.model_validate(stub)


@router.post(
    "/batch",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def generate_batch(
    db: DbSession,
    settings: AppSettings,
    payload: PayStubBatchCreate,
) -> BatchResponse:
    """Generate stubs for many employees under one run.

    Items that cannot be built are reported in ``skipped``.
    """
    service = PayrollRunService(db, settings)
    result = await service.generate_batch(
        company_id=payload.company_id,
        period_date=payload.period_date,
        items=[item.to_request() for item in payload.stubs],
        sub_period=payload.sub_period,
        payroll_type=payload.payroll_type,
    )
    return BatchResponse(
        run=PayrollRunResponse.model_validate(result.run),
        created_count=result.created_count,
        skipped_count=result.skipped_count,
        created=[PayStubResponse.model_validate(s) for s in result.created],
        skipped=[SkippedItemResponse.model_validate(s) for s in result.skipped],
    )


# ============================================================================
# Queries
# ============================================================================


@router.get("", response_model=PayStubListResponse)
async def list_pay_stubs(
    db: DbSession,
    settings: AppSettings,
    company_id: Annotated[UUID | None, Query()] = None,
    employee_id: Annotated[UUID | None, Query()] = None,
    payroll_run_id: Annotated[UUID | None, Query()] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    start_date: Annotated[date | None, Query()] = None,
    end_date: Annotated[date | None, Query()] = None,
) -> PayStubListResponse:
    """List pay stubs with optional filters."""
    service = PayStubService(db, settings)
    stubs = await service.list_pay_stubs(
        company_id=company_id,
        employee_id=employee_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        payroll_run_id=payroll_run_id,
    )
    return PayStubListResponse(
        items=[PayStubResponse.model_validate(s) for s in stubs],
        total=len(stubs),
    )


@router.get(
    "/{pay_stub_id}",
    response_model=PayStubResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_pay_stub(
    db: DbSession,
    settings: AppSettings,
    pay_stub_id: Annotated[UUID, Path()],
) -> PayStubResponse:
    """Get a pay stub by ID."""
    stub = await PayStubService(db, settings).get_pay_stub(pay_stub_id)
    return PayStubResponse.model_validate(stub)


# ============================================================================
# Review
# ============================================================================


@router.put(
    "/{pay_stub_id}/approve",
    response_model=PayStubResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_pay_stub(
    db: DbSession,
    settings: AppSettings,
    pay_stub_id: Annotated[UUID, Path()],
    payload: ApprovalRequest,
) -> PayStubResponse:
    """Approve a DRAFT pay stub."""
    stub = await PayStubService(db, settings).approve_pay_stub(
        pay_stub_id, approved_by=payload.approved_by, comments=payload.comments
    )
    return PayStubResponse.model_validate(stub)


@router.put(
    "/{pay_stub_id}/reject",
    response_model=PayStubResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_pay_stub(
    db: DbSession,
    settings: AppSettings,
    pay_stub_id: Annotated[UUID, Path()],
    payload: RejectionRequest,
) -> PayStubResponse:
    """Reject a DRAFT pay stub."""
    stub = await PayStubService(db, settings).reject_pay_stub(
        pay_stub_id, comments=payload.comments
    )
    return PayStubResponse.model_validate(stub)
