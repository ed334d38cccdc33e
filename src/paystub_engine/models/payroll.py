"""Payroll run, pay stub, and pay stub line models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from paystub_engine.models.base import MONEY, Base, TimestampMixin

if TYPE_CHECKING:
    from paystub_engine.models.company import Company, Employee

ZERO = Decimal("0")


class PayrollRun(Base, TimestampMixin):
    """All pay stubs sharing company, month, sub-period and payroll type.

    Totals are a cached aggregate, only ever written by a full recompute.
    """

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    period_date: Mapped[date] = mapped_column(Date, nullable=False)
    sub_period: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payroll_type: Mapped[str] = mapped_column(String, nullable=False, default="REGULAR")
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    total_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    total_net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "company_id",
            "period_date",
            "sub_period",
            "payroll_type",
            name="payroll_run_key_unique",
        ),
        CheckConstraint("status IN ('DRAFT', 'APPROVED')", name="payroll_run_status_check"),
    )

    # Relationships
    company: Mapped[Company] = relationship()
    stubs: Mapped[list[PayStub]] = relationship(back_populates="payroll_run")


class PayStub(Base, TimestampMixin):
    """One employee's computed compensation for one pay period."""

    __tablename__ = "pay_stub"

    pay_stub_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    stub_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="RESTRICT"),
        nullable=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="RESTRICT"),
        nullable=False,
    )
    pay_period: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payroll_type: Mapped[str] = mapped_column(String, nullable=False, default="REGULAR")
    working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False)

    base_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    prorated_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_allowances: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    gross_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    social_security: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    educational_insurance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    private_insurance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    employer_contributions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    bonus_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    bonus_note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "pay_period",
            "payroll_type",
            name="pay_stub_employee_period_type_unique",
        ),
        CheckConstraint(
            "status IN ('DRAFT', 'APPROVED', 'REJECTED')",
            name="pay_stub_status_check",
        ),
        CheckConstraint("working_days > 0", name="pay_stub_working_days_check"),
        CheckConstraint(
            "days_worked >= 0 AND days_worked <= working_days",
            name="pay_stub_days_worked_check",
        ),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun | None] = relationship(back_populates="stubs")
    employee: Mapped[Employee] = relationship()
    deductions: Mapped[list[PayStubDeduction]] = relationship(
        back_populates="pay_stub", lazy="selectin", cascade="all, delete-orphan"
    )
    allowances: Mapped[list[PayStubAllowance]] = relationship(
        back_populates="pay_stub", lazy="selectin", cascade="all, delete-orphan"
    )


class PayStubDeduction(Base):
    """Ad-hoc deduction itemized on a stub."""

    __tablename__ = "pay_stub_deduction"

    pay_stub_deduction_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_stub_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_stub.pay_stub_id", ondelete="CASCADE"),
        nullable=False,
    )
    deduction_type: Mapped[str] = mapped_column(String, nullable=False, default="OTHER")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (CheckConstraint("amount >= 0", name="pay_stub_deduction_amount_check"),)

    pay_stub: Mapped[PayStub] = relationship(back_populates="deductions")


class PayStubAllowance(Base):
    """Ad-hoc allowance itemized on a stub."""

    __tablename__ = "pay_stub_allowance"

    pay_stub_allowance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    pay_stub_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_stub.pay_stub_id", ondelete="CASCADE"),
        nullable=False,
    )
    allowance_type: Mapped[str] = mapped_column(String, nullable=False, default="OTHER")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    __table_args__ = (CheckConstraint("amount >= 0", name="pay_stub_allowance_amount_check"),)

    pay_stub: Mapped[PayStub] = relationship(back_populates="allowances")


class PayStubLegalParameter(Base):
    """Legal parameters a stub was calculated with.

    Once the stub is approved these parameters are frozen.
    """

    __tablename__ = "pay_stub_legal_parameter"

    pay_stub_id: Mapped[UUID] = mapped_column(
        ForeignKey("pay_stub.pay_stub_id", ondelete="CASCADE"),
        primary_key=True,
    )
    legal_parameter_id: Mapped[UUID] = mapped_column(
        ForeignKey("legal_parameter.legal_parameter_id", ondelete="RESTRICT"),
        primary_key=True,
    )
