"""Legal parameter store - company-scoped, effective-dated tax and contribution rules."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from paystub_engine.calculators.money import to_decimal
from paystub_engine.calculators.types import (
    CONTRIBUTION_CATEGORIES,
    CompanyParameters,
    ContributionRate,
    FixedParameter,
    IncomeTaxBracket,
    ParameterCategory,
    ParameterStatus,
    ParameterType,
    TypedParameter,
)
from paystub_engine.database import dialect_insert
from paystub_engine.errors import ConfigurationError, ConflictError, NotFoundError, ValidationError
from paystub_engine.models import Company, LegalParameter, PayStubLegalParameter

logger = logging.getLogger(__name__)

# Keys a company is expected to configure, with their category.
AVAILABLE_KEYS: list[dict[str, str]] = [
    {"key": "ss_empleado", "name": "Social Security - Employee", "category": "social_security"},
    {"key": "ss_patrono", "name": "Social Security - Employer", "category": "social_security"},
    {"key": "se_empleado", "name": "Educational Insurance - Employee", "category": "educational_insurance"},
    {"key": "se_patrono", "name": "Educational Insurance - Employer", "category": "educational_insurance"},
    {"key": "riesgo_profesional", "name": "Occupational Risk", "category": "other"},
    {"key": "isr_r1", "name": "ISR Bracket 1 (Exempt)", "category": "isr"},
    {"key": "isr_r2", "name": "ISR Bracket 2 (15%)", "category": "isr"},
    {"key": "isr_r3", "name": "ISR Bracket 3 (20%)", "category": "isr"},
    {"key": "isr_r4", "name": "ISR Bracket 4 (25%)", "category": "isr"},
]

# Bootstrap set inserted by ensure_default_parameters (Panama, 2024 scale).
DEFAULT_PARAMETERS: list[dict[str, Any]] = [
    {"key": "ss_empleado", "name": "Social Security - Employee", "category": "social_security",
     "type": "employee", "percentage": Decimal("8.75")},
    {"key": "ss_patrono", "name": "Social Security - Employer", "category": "social_security",
     "type": "employer", "percentage": Decimal("12.25")},
    {"key": "se_empleado", "name": "Educational Insurance - Employee",
     "category": "educational_insurance", "type": "employee", "percentage": Decimal("1.25")},
    {"key": "isr_r1", "name": "ISR Bracket 1 (Exempt)", "category": "isr", "type": "employee",
     "percentage": Decimal("0"), "min_range": Decimal("0"), "max_range": Decimal("12000")},
    {"key": "isr_r2", "name": "ISR Bracket 2 (15%)", "category": "isr", "type": "employee",
     "percentage": Decimal("15"), "min_range": Decimal("12001"), "max_range": Decimal("36000")},
    {"key": "isr_r3", "name": "ISR Bracket 3 (20%)", "category": "isr", "type": "employee",
     "percentage": Decimal("20"), "min_range": Decimal("36001"), "max_range": Decimal("60000")},
    {"key": "isr_r4", "name": "ISR Bracket 4 (25%)", "category": "isr", "type": "employee",
     "percentage": Decimal("25"), "min_range": Decimal("60001"), "max_range": Decimal("999999")},
]

# Fields that carry calculation semantics; frozen once any stub used them.
FINANCIAL_FIELDS = frozenset(
    {"category", "type", "percentage", "min_range", "max_range", "effective_date"}
)
MUTABLE_FIELDS = FINANCIAL_FIELDS | {"name", "description", "status"}


def _ranges_overlap(a: IncomeTaxBracket, b: IncomeTaxBracket) -> bool:
    # Ranges are inclusive; a missing ceiling is open-ended
    a_below_b = a.max_range is not None and a.max_range < b.min_range
    b_below_a = b.max_range is not None and b.max_range < a.min_range
    return not (a_below_b or b_below_a)


def normalize_key(key: str) -> str:
    """Lower-case snake_case key with only [a-z0-9_]."""
    normalized = re.sub(r"\s+", "_", key.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", normalized)


def to_typed(row: LegalParameter) -> TypedParameter:
    """Convert a stored row into the closed parameter union.

    Raises:
        ConfigurationError: If the row cannot be interpreted
    """
    try:
        category = ParameterCategory(row.category)
        side = ParameterType(row.type)
    except ValueError as exc:
        raise ConfigurationError(
            f"Legal parameter '{row.key}' has unknown category/type {row.category}/{row.type}",
            key=row.key,
        ) from exc

    percentage = to_decimal(row.percentage)
    if percentage < 0:
        raise ConfigurationError(
            f"Legal parameter '{row.key}' has a negative percentage", key=row.key
        )

    if category == ParameterCategory.ISR:
        if row.min_range is None:
            raise ConfigurationError(
                f"ISR parameter '{row.key}' has no min_range", key=row.key
            )
        return IncomeTaxBracket(
            parameter_id=row.legal_parameter_id,
            key=row.key,
            min_range=to_decimal(row.min_range),
            max_range=to_decimal(row.max_range) if row.max_range is not None else None,
            percentage=percentage,
            effective_date=row.effective_date,
        )

    if category in CONTRIBUTION_CATEGORIES:
        if side == ParameterType.FIXED:
            raise ConfigurationError(
                f"Contribution parameter '{row.key}' must be employee or employer side",
                key=row.key,
            )
        return ContributionRate(
            parameter_id=row.legal_parameter_id,
            key=row.key,
            category=category,
            side=side,
            percentage=percentage,
            effective_date=row.effective_date,
        )

    return FixedParameter(
        parameter_id=row.legal_parameter_id,
        key=row.key,
        category=category,
        percentage=percentage,
        effective_date=row.effective_date,
    )


class LegalParameterStore:
    """Reads and administers legal parameters.

    The calculation path only reads (``find_active_parameters``,
    ``load_company_parameters``). Parameter edits become visible to stubs
    built after the edit commits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ===== Engine reads =====

    async def find_active_parameters(
        self,
        company_id: UUID,
        category: ParameterCategory | str | None = None,
        as_of: date | None = None,
    ) -> list[TypedParameter]:
        """Active parameters for a company, optionally by category and effective date."""
        query = select(LegalParameter).where(
            LegalParameter.company_id == company_id,
            LegalParameter.status == ParameterStatus.ACTIVE.value,
        )
        if category is not None:
            query = query.where(LegalParameter.category == ParameterCategory(category).value)
        if as_of is not None:
            query = query.where(LegalParameter.effective_date <= as_of)
        query = query.order_by(LegalParameter.effective_date, LegalParameter.key)

        result = await self.session.execute(query)
        return [to_typed(row) for row in result.scalars().all()]

    async def load_company_parameters(self, company_id: UUID, as_of: date) -> CompanyParameters:
        """Resolve the parameters in force for a company on a date."""
        typed_rows = await self.find_active_parameters(company_id, as_of=as_of)

        rates: dict[tuple[ParameterCategory, ParameterType], list[ContributionRate]] = defaultdict(list)
        brackets: list[IncomeTaxBracket] = []
        for param in typed_rows:
            if isinstance(param, ContributionRate):
                rates[(param.category, param.side)].append(param)
            elif isinstance(param, IncomeTaxBracket):
                brackets.append(param)

        return CompanyParameters(
            social_security_employee=self._latest_rate(
                rates[(ParameterCategory.SOCIAL_SECURITY, ParameterType.EMPLOYEE)]
            ),
            social_security_employer=self._latest_rate(
                rates[(ParameterCategory.SOCIAL_SECURITY, ParameterType.EMPLOYER)]
            ),
            educational_employee=self._latest_rate(
                rates[(ParameterCategory.EDUCATIONAL_INSURANCE, ParameterType.EMPLOYEE)]
            ),
            educational_employer=self._latest_rate(
                rates[(ParameterCategory.EDUCATIONAL_INSURANCE, ParameterType.EMPLOYER)]
            ),
            isr_brackets=self._current_bracket_table(brackets),
        )

    @staticmethod
    def _latest_rate(candidates: list[ContributionRate]) -> ContributionRate | None:
        if not candidates:
            return None
        latest_date = max(c.effective_date for c in candidates)
        latest = [c for c in candidates if c.effective_date == latest_date]
        if len(latest) > 1:
            keys = ", ".join(sorted(c.key for c in latest))
            raise ConfigurationError(
                f"Ambiguous {latest[0].category.value}/{latest[0].side.value} rates "
                f"effective {latest_date}: {keys}",
            )
        return latest[0]

    @staticmethod
    def _current_bracket_table(rows: list[IncomeTaxBracket]) -> list[IncomeTaxBracket]:
        """Bracket rows in force: a row is dropped once a later-effective row covers part of its range.

        Superseding one bracket replaces only that slot; a new table starting
        at 0 with an open top replaces every older row.
        """
        table = [
            row for row in rows
            if not any(
                newer.effective_date > row.effective_date and _ranges_overlap(newer, row)
                for newer in rows
            )
        ]
        return sorted(table, key=lambda r: r.min_range)

    # ===== Administration =====

    async def get_parameter(self, parameter_id: UUID) -> LegalParameter:
        parameter = await self.session.get(LegalParameter, parameter_id)
        if parameter is None:
            raise NotFoundError("LegalParameter", parameter_id)
        return parameter

    async def list_parameters(
        self,
        company_id: UUID,
        category: str | None = None,
        status: str | None = None,
    ) -> list[LegalParameter]:
        query = select(LegalParameter).where(LegalParameter.company_id == company_id)
        if category:
            query = query.where(LegalParameter.category == category)
        if status:
            query = query.where(LegalParameter.status == status)
        query = query.order_by(LegalParameter.category, LegalParameter.key)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def isr_rates(self, company_id: UUID) -> list[LegalParameter]:
        """Active ISR rows ordered by lower range."""
        result = await self.session.execute(
            select(LegalParameter)
            .where(
                LegalParameter.company_id == company_id,
                LegalParameter.category == ParameterCategory.ISR.value,
                LegalParameter.status == ParameterStatus.ACTIVE.value,
            )
            .order_by(LegalParameter.min_range)
        )
        return list(result.scalars().all())

    async def create_parameter(
        self,
        company_id: UUID,
        key: str,
        name: str,
        category: str,
        type: str,
        percentage: Decimal,
        min_range: Decimal | None = None,
        max_range: Decimal | None = None,
        description: str | None = None,
        effective_date: date | None = None,
    ) -> LegalParameter:
        """Create a parameter; the key is normalized and must be unique per company."""
        if await self.session.get(Company, company_id) is None:
            raise NotFoundError("Company", company_id)

        normalized = normalize_key(key or "")
        if not normalized or not name:
            raise ValidationError("Parameter key and name are required")
        values = self._validated_values(
            category=category,
            type=type,
            percentage=percentage,
            min_range=min_range,
            max_range=max_range,
        )

        parameter = LegalParameter(
            legal_parameter_id=uuid4(),
            company_id=company_id,
            key=normalized,
            name=name,
            description=description,
            effective_date=effective_date or date.today(),
            status=ParameterStatus.ACTIVE.value,
            **values,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(parameter)
                await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f'Parameter with key "{normalized}" already exists for this company',
                company_id=str(company_id),
                key=normalized,
            ) from exc

        logger.info(
            "Created legal parameter %s (%s/%s) for company %s",
            normalized, parameter.category, parameter.type, company_id,
        )
        return parameter

    async def update_parameter(self, parameter_id: UUID, **changes: Any) -> LegalParameter:
        """Update a parameter in place.

        Name, description and status can always change. Financial fields are
        frozen once any stub was calculated with the parameter, so the
        figures an approval signs off on match the linked values.

        Raises:
            ConflictError: If a frozen field would change
        """
        parameter = await self.get_parameter(parameter_id)

        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        financial = {
            k: v for k, v in changes.items()
            if k in FINANCIAL_FIELDS and v != getattr(parameter, k)
        }
        if financial and await self.is_referenced(parameter_id):
            raise ConflictError(
                f"Parameter '{parameter.key}' is used by pay stubs; "
                "create a new effective-dated parameter instead",
                key=parameter.key,
            )

        merged = {
            "category": changes.get("category", parameter.category),
            "type": changes.get("type", parameter.type),
            "percentage": changes.get("percentage", parameter.percentage),
            "min_range": changes.get("min_range", parameter.min_range),
            "max_range": changes.get("max_range", parameter.max_range),
        }
        values = self._validated_values(**merged)

        if "status" in changes:
            try:
                values["status"] = ParameterStatus(changes["status"]).value
            except ValueError as exc:
                raise ValidationError(f"Unknown status {changes['status']!r}") from exc
        for field_name in ("name", "description", "effective_date"):
            if field_name in changes and changes[field_name] is not None:
                values[field_name] = changes[field_name]

        for field_name, value in values.items():
            setattr(parameter, field_name, value)
        await self.session.flush()
        return parameter

    async def supersede_parameter(
        self,
        parameter_id: UUID,
        new_key: str,
        effective_date: date,
        percentage: Decimal | None = None,
        min_range: Decimal | None = None,
        max_range: Decimal | None = None,
    ) -> LegalParameter:
        """Create a new effective-dated version of a parameter.

        The old row is left untouched so stubs already calculated with it keep
        their history; date resolution picks the new row from
        ``effective_date`` on.
        """
        current = await self.get_parameter(parameter_id)
        if effective_date <= current.effective_date:
            raise ValidationError(
                f"New version must take effect after {current.effective_date}",
            )
        return await self.create_parameter(
            company_id=current.company_id,
            key=new_key,
            name=current.name,
            category=current.category,
            type=current.type,
            percentage=current.percentage if percentage is None else percentage,
            min_range=current.min_range if min_range is None else min_range,
            max_range=current.max_range if max_range is None else max_range,
            description=current.description,
            effective_date=effective_date,
        )

    async def delete_parameter(self, parameter_id: UUID) -> None:
        """Delete a parameter no pay stub has used."""
        parameter = await self.get_parameter(parameter_id)
        if await self.is_referenced(parameter_id):
            raise ConflictError(
                f"Parameter '{parameter.key}' is referenced by pay stubs; deactivate it instead",
                key=parameter.key,
            )
        await self.session.delete(parameter)
        await self.session.flush()

    async def is_referenced(self, parameter_id: UUID) -> bool:
        query = select(PayStubLegalParameter.pay_stub_id).where(
            PayStubLegalParameter.legal_parameter_id == parameter_id
        )
        return bool(await self.session.scalar(select(query.exists())))

    async def ensure_default_parameters(
        self, company_id: UUID, effective_date: date
    ) -> int:
        """Insert the default parameter set where keys are absent.

        Returns count of inserted rows.
        """
        inserted = 0
        for default in DEFAULT_PARAMETERS:
            stmt = (
                dialect_insert(self.session, LegalParameter)
                .values(
                    legal_parameter_id=uuid4(),
                    company_id=company_id,
                    effective_date=effective_date,
                    status=ParameterStatus.ACTIVE.value,
                    min_range=default.get("min_range"),
                    max_range=default.get("max_range"),
                    description=None,
                    key=default["key"],
                    name=default["name"],
                    category=default["category"],
                    type=default["type"],
                    percentage=default["percentage"],
                )
                .on_conflict_do_nothing(index_elements=["company_id", "key"])
            )
            result = await self.session.execute(stmt)
            inserted += result.rowcount or 0
        return inserted

    @staticmethod
    def _validated_values(
        category: str,
        type: str,
        percentage: Any,
        min_range: Any,
        max_range: Any,
    ) -> dict[str, Any]:
        try:
            category_value = ParameterCategory(category).value
            type_value = ParameterType(type).value
        except ValueError as exc:
            raise ValidationError(f"Unknown category/type {category}/{type}") from exc

        if percentage is None:
            raise ValidationError("Percentage is required")
        pct = to_decimal(percentage)
        if pct < 0:
            raise ValidationError(f"Percentage must not be negative, got {pct}")

        low = to_decimal(min_range) if min_range is not None else None
        high = to_decimal(max_range) if max_range is not None else None
        if low is not None and high is not None and low > high:
            raise ValidationError("min_range cannot be greater than max_range")
        if category_value == ParameterCategory.ISR.value and low is None:
            raise ValidationError("ISR parameters require min_range")
        if (
            category_value in {c.value for c in CONTRIBUTION_CATEGORIES}
            and type_value == ParameterType.FIXED.value
        ):
            raise ValidationError("Contribution parameters must be employee or employer side")

        return {
            "category": category_value,
            "type": type_value,
            "percentage": pct,
            "min_range": low,
            "max_range": high,
        }
