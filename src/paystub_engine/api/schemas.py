"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from paystub_engine.calculators.types import (
    AllowanceInput,
    DeductionInput,
    ParameterCategory,
    ParameterStatus,
    ParameterType,
    PayrollType,
)
from paystub_engine.services.pay_stub_service import PayStubRequest


# ============================================================================
# Pay stub schemas
# ============================================================================


class DeductionItem(BaseModel):
    """Ad-hoc deduction on a stub request."""

    amount: Decimal = Field(ge=0)
    type: str = "OTHER"
    description: str | None = None
    is_fixed: bool = False


class AllowanceItem(BaseModel):
    """Ad-hoc allowance on a stub request."""

    amount: Decimal = Field(ge=0)
    type: str = "OTHER"
    description: str | None = None


class PayStubCreate(BaseModel):
    """Schema for generating a pay stub."""

    employee_id: UUID
    pay_period: date
    base_salary: Decimal = Field(ge=0)
    payment_date: date | None = None
    working_days: int | None = Field(default=None, gt=0)
    days_worked: int | None = Field(default=None, ge=0)
    payroll_type: PayrollType = PayrollType.REGULAR
    sub_period: int = Field(default=1, ge=1)
    private_insurance: Decimal = Field(default=Decimal("0"), ge=0)
    deductions: list[DeductionItem] = Field(default_factory=list)
    allowances: list[AllowanceItem] = Field(default_factory=list)

    def to_request(self) -> PayStubRequest:
        return PayStubRequest(
            employee_id=self.employee_id,
            pay_period=self.pay_period,
            base_salary=self.base_salary,
            payment_date=self.payment_date,
            working_days=self.working_days,
            days_worked=self.days_worked,
            payroll_type=self.payroll_type,
            sub_period=self.sub_period,
            private_insurance=self.private_insurance,
            deductions=[DeductionInput(**d.model_dump()) for d in self.deductions],
            allowances=[AllowanceInput(**a.model_dump()) for a in self.allowances],
        )


class PayStubBatchItem(BaseModel):
    """One stub inside a batch; run key fields come from the batch."""

    employee_id: UUID
    base_salary: Decimal = Field(ge=0)
    pay_period: date | None = None
    payment_date: date | None = None
    working_days: int | None = Field(default=None, gt=0)
    days_worked: int | None = Field(default=None, ge=0)
    private_insurance: Decimal = Field(default=Decimal("0"), ge=0)
    deductions: list[DeductionItem] = Field(default_factory=list)
    allowances: list[AllowanceItem] = Field(default_factory=list)

    def to_request(self) -> PayStubRequest:
        return PayStubRequest(
            employee_id=self.employee_id,
            pay_period=self.pay_period,
            base_salary=self.base_salary,
            payment_date=self.payment_date,
            working_days=self.working_days,
            days_worked=self.days_worked,
            private_insurance=self.private_insurance,
            deductions=[DeductionInput(**d.model_dump()) for d in self.deductions],
            allowances=[AllowanceInput(**a.model_dump()) for a in self.allowances],
        )


class PayStubBatchCreate(BaseModel):
    """Schema for generating a batch of stubs under one run."""

    company_id: UUID
    period_date: date
    sub_period: int = Field(default=1, ge=1)
    payroll_type: PayrollType = PayrollType.REGULAR
    stubs: list[PayStubBatchItem] = Field(min_length=1)


class PayStubDeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    deduction_type: str
    description: str | None = None
    amount: Decimal
    is_fixed: bool


class PayStubAllowanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    allowance_type: str
    description: str | None = None
    amount: Decimal


class PayStubResponse(BaseModel):
    """Schema for pay stub response."""

    model_config = ConfigDict(from_attributes=True)

    pay_stub_id: UUID
    stub_number: str
    payroll_run_id: UUID | None = None
    employee_id: UUID
    company_id: UUID
    pay_period: date
    payment_date: date
    payroll_type: str
    working_days: int
    days_worked: int
    base_salary: Decimal
    prorated_salary: Decimal
    total_allowances: Decimal
    gross_salary: Decimal
    income_tax: Decimal
    social_security: Decimal
    educational_insurance: Decimal
    private_insurance: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    employer_contributions: Decimal
    bonus_amount: Decimal
    bonus_note: str
    status: str
    approved_by: str | None = None
    approval_date: datetime | None = None
    comments: str | None = None
    created_at: datetime
    deductions: list[PayStubDeductionResponse] = Field(default_factory=list)
    allowances: list[PayStubAllowanceResponse] = Field(default_factory=list)


class PayStubListResponse(BaseModel):
    """Schema for listing pay stubs."""

    items: list[PayStubResponse]
    total: int


class ApprovalRequest(BaseModel):
    """Schema for approving a pay stub."""

    approved_by: str = Field(min_length=1)
    comments: str | None = None


class RunApprovalRequest(BaseModel):
    """Schema for approving a payroll run. Runs carry no comments."""

    model_config = ConfigDict(extra="forbid")

    approved_by: str = Field(min_length=1)


class RejectionRequest(BaseModel):
    """Schema for rejecting a pay stub."""

    comments: str | None = None


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    company_id: UUID
    period_date: date
    sub_period: int
    payroll_type: str
    status: str
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime


class SkippedItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    employee_id: UUID | None = None
    reason: str
    code: str


class BatchResponse(BaseModel):
    """Schema for batch generation results."""

    run: PayrollRunResponse
    created_count: int
    skipped_count: int
    created: list[PayStubResponse]
    skipped: list[SkippedItemResponse]


# ============================================================================
# Legal parameter schemas
# ============================================================================


class LegalParameterCreate(BaseModel):
    """Schema for creating a legal parameter."""

    company_id: UUID
    key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: ParameterCategory
    type: ParameterType
    percentage: Decimal = Field(ge=0)
    min_range: Decimal | None = None
    max_range: Decimal | None = None
    description: str | None = None
    effective_date: date | None = None


class LegalParameterUpdate(BaseModel):
    """Schema for updating a legal parameter; omitted fields are unchanged."""

    name: str | None = None
    description: str | None = None
    category: ParameterCategory | None = None
    type: ParameterType | None = None
    percentage: Decimal | None = Field(default=None, ge=0)
    min_range: Decimal | None = None
    max_range: Decimal | None = None
    effective_date: date | None = None
    status: ParameterStatus | None = None


class LegalParameterSupersede(BaseModel):
    """Schema for creating a new effective-dated version of a parameter."""

    key: str = Field(min_length=1)
    effective_date: date
    percentage: Decimal | None = Field(default=None, ge=0)
    min_range: Decimal | None = None
    max_range: Decimal | None = None


class LegalParameterResponse(BaseModel):
    """Schema for legal parameter response."""

    model_config = ConfigDict(from_attributes=True)

    legal_parameter_id: UUID
    company_id: UUID
    key: str
    name: str
    description: str | None = None
    category: str
    type: str
    percentage: Decimal
    min_range: Decimal | None = None
    max_range: Decimal | None = None
    effective_date: date
    status: str


class LegalParameterKey(BaseModel):
    key: str
    name: str
    category: str


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str
    context: dict[str, Any] = Field(default_factory=dict)
