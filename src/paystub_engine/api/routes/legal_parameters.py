"""Legal parameter administration endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from paystub_engine.api.dependencies import DbSession
from paystub_engine.api.schemas import (
    ErrorResponse,
    LegalParameterCreate,
    LegalParameterKey,
    LegalParameterResponse,
    LegalParameterSupersede,
    LegalParameterUpdate,
)
from paystub_engine.services.legal_parameter_store import AVAILABLE_KEYS, LegalParameterStore

router = APIRouter(prefix="/legal-parameters", tags=["legal-parameters"])


@router.get("", response_model=list[LegalParameterResponse])
async def list_parameters(
    db: DbSession,
    company_id: Annotated[UUID, Query()],
    category: Annotated[str | None, Query()] = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[LegalParameterResponse]:
    """List a company's legal parameters."""
    rows = await LegalParameterStore(db).list_parameters(
        company_id, category=category, status=status_filter
    )
    return [LegalParameterResponse.model_validate(r) for r in rows]


@router.get("/keys", response_model=list[LegalParameterKey])
async def available_keys() -> list[LegalParameterKey]:
    """Keys a company is expected to configure."""
    return [LegalParameterKey(**k) for k in AVAILABLE_KEYS]


@router.get("/isr/rates", response_model=list[LegalParameterResponse])
async def isr_rates(
    db: DbSession,
    company_id: Annotated[UUID, Query()],
) -> list[LegalParameterResponse]:
    """Active income tax brackets ordered by lower range."""
    rows = await LegalParameterStore(db).isr_rates(company_id)
    return [LegalParameterResponse.model_validate(r) for r in rows]


@router.get(
    "/{parameter_id}",
    response_model=LegalParameterResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_parameter(
    db: DbSession,
    parameter_id: Annotated[UUID, Path()],
) -> LegalParameterResponse:
    row = await LegalParameterStore(db).get_parameter(parameter_id)
    return LegalParameterResponse.model_validate(row)


@router.post(
    "",
    response_model=LegalParameterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_parameter(
    db: DbSession,
    payload: LegalParameterCreate,
) -> LegalParameterResponse:
    """Create a legal parameter; the key is normalized to snake_case."""
    row = await LegalParameterStore(db).create_parameter(
        company_id=payload.company_id,
        key=payload.key,
        name=payload.name,
        category=payload.category.value,
        type=payload.type.value,
        percentage=payload.percentage,
        min_range=payload.min_range,
        max_range=payload.max_range,
        description=payload.description,
        effective_date=payload.effective_date,
    )
    return LegalParameterResponse.model_validate(row)


@router.put(
    "/{parameter_id}",
    response_model=LegalParameterResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_parameter(
    db: DbSession,
    parameter_id: Annotated[UUID, Path()],
    payload: LegalParameterUpdate,
) -> LegalParameterResponse:
    """Update a legal parameter.

    Financial fields of a parameter used by any pay stub cannot change;
    use the supersede endpoint instead.
    """
    changes = payload.model_dump(exclude_unset=True, mode="python")
    for enum_field in ("category", "type", "status"):
        if changes.get(enum_field) is not None:
            changes[enum_field] = changes[enum_field].value
    row = await LegalParameterStore(db).update_parameter(parameter_id, **changes)
    return LegalParameterResponse.model_validate(row)


@router.post(
    "/{parameter_id}/supersede",
    response_model=LegalParameterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def supersede_parameter(
    db: DbSession,
    parameter_id: Annotated[UUID, Path()],
    payload: LegalParameterSupersede,
) -> LegalParameterResponse:
    """Create a new effective-dated version of a parameter."""
    row = await LegalParameterStore(db).supersede_parameter(
        parameter_id,
        new_key=payload.key,
        effective_date=payload.effective_date,
        percentage=payload.percentage,
        min_range=payload.min_range,
        max_range=payload.max_range,
    )
    return LegalParameterResponse.model_validate(row)


@router.delete(
    "/{parameter_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_parameter(
    db: DbSession,
    parameter_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a parameter that no pay stub references."""
    await LegalParameterStore(db).delete_parameter(parameter_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
