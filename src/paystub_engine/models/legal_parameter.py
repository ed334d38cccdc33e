"""Legal tax/contribution parameter model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from paystub_engine.models.base import RANGE, RATE, Base, TimestampMixin


class LegalParameter(Base, TimestampMixin):
    """Company-scoped, effective-dated tax or contribution rule.

    Percentages are stored as percents (8.75 means 8.75%).
    """

    __tablename__ = "legal_parameter"

    legal_parameter_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
    )
    key: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    min_range: Mapped[Decimal | None] = mapped_column(RANGE, nullable=True)
    max_range: Mapped[Decimal | None] = mapped_column(RANGE, nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        UniqueConstraint("company_id", "key", name="legal_parameter_company_key_unique"),
        CheckConstraint(
            "category IN ('social_security', 'educational_insurance', 'isr', 'other')",
            name="legal_parameter_category_check",
        ),
        CheckConstraint(
            "type IN ('employee', 'employer', 'fixed')",
            name="legal_parameter_type_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive')",
            name="legal_parameter_status_check",
        ),
        CheckConstraint("percentage >= 0", name="legal_parameter_percentage_check"),
        CheckConstraint(
            "min_range IS NULL OR max_range IS NULL OR min_range <= max_range",
            name="legal_parameter_range_check",
        ),
    )
