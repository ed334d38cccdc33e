"""Pytest fixtures for paystub engine tests."""

from __future__ import annotations

import warnings
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.exc import SAWarning
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from paystub_engine.calculators.types import (
    CompanyParameters,
    ContributionRate,
    IncomeTaxBracket,
    ParameterCategory,
    ParameterType,
)
from paystub_engine.config import Settings
from paystub_engine.database import make_session_factory
from paystub_engine.models import Base, Company, Employee
from paystub_engine.services.legal_parameter_store import LegalParameterStore

# SQLite stores Numeric as floating point; values are still read back as Decimal
warnings.filterwarnings("ignore", category=SAWarning, message=".*Decimal objects natively.*")

PARAMETERS_EFFECTIVE = date(2024, 1, 1)


def make_settings(database_url: str, **overrides) -> Settings:
    values = {
        "database_url": database_url,
        "engine_version": "test",
        "host": "127.0.0.1",
        "port": 8000,
        "debug": False,
        "log_level": "DEBUG",
        "default_working_days": 30,
        "isr_periods_per_year": 1,
    }
    values.update(overrides)
    return Settings(**values)


def make_company_parameters(
    social_security: str | None = "8.75",
    employer_social_security: str | None = None,
    educational: str | None = None,
) -> CompanyParameters:
    """In-memory parameter set with the Panama bracket table."""

    def rate(category, side, percentage):
        return ContributionRate(
            parameter_id=uuid4(),
            key=f"{category.value}_{side.value}",
            category=category,
            side=side,
            percentage=Decimal(percentage),
            effective_date=PARAMETERS_EFFECTIVE,
        )

    brackets = [
        ("0", "12000", "0"),
        ("12001", "36000", "15"),
        ("36001", "60000", "20"),
        ("60001", "999999", "25"),
    ]
    return CompanyParameters(
        social_security_employee=(
            rate(ParameterCategory.SOCIAL_SECURITY, ParameterType.EMPLOYEE, social_security)
            if social_security is not None
            else None
        ),
        social_security_employer=(
            rate(ParameterCategory.SOCIAL_SECURITY, ParameterType.EMPLOYER, employer_social_security)
            if employer_social_security is not None
            else None
        ),
        educational_employee=(
            rate(ParameterCategory.EDUCATIONAL_INSURANCE, ParameterType.EMPLOYEE, educational)
            if educational is not None
            else None
        ),
        isr_brackets=[
            IncomeTaxBracket(
                parameter_id=uuid4(),
                key=f"isr_r{i}",
                min_range=Decimal(low),
                max_range=Decimal(high),
                percentage=Decimal(pct),
                effective_date=PARAMETERS_EFFECTIVE,
            )
            for i, (low, high, pct) in enumerate(brackets, start=1)
        ],
    )


def use_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy, not the sqlite driver, open transactions (needed for SAVEPOINT)."""

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite so separate sessions get separate connections."""
    return f"sqlite+aiosqlite:///{tmp_path / 'paystub_test.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    return make_settings(database_url)


@pytest_asyncio.fixture
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with a fresh schema."""
    engine = create_async_engine(database_url, echo=False)
    use_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def company(session: AsyncSession) -> Company:
    company = Company(company_id=uuid4(), name="Acme Panama S.A.", is_active=True)
    session.add(company)
    await session.commit()
    return company


@pytest_asyncio.fixture
async def employee(session: AsyncSession, company: Company) -> Employee:
    employee = Employee(
        employee_id=uuid4(),
        company_id=company.company_id,
        first_name="Ana",
        last_name="Rivera",
        base_salary=Decimal("2400.00"),
        hire_date=date(2020, 5, 4),
    )
    session.add(employee)
    await session.commit()
    return employee


@pytest_asyncio.fixture
async def second_employee(session: AsyncSession, company: Company) -> Employee:
    employee = Employee(
        employee_id=uuid4(),
        company_id=company.company_id,
        first_name="Luis",
        last_name="Moreno",
        base_salary=Decimal("1500.00"),
        hire_date=date(2024, 3, 1),
    )
    session.add(employee)
    await session.commit()
    return employee


@pytest_asyncio.fixture
async def default_parameters(session: AsyncSession, company: Company) -> int:
    """Default Panama parameter set, effective 2024-01-01."""
    inserted = await LegalParameterStore(session).ensure_default_parameters(
        company.company_id, PARAMETERS_EFFECTIVE
    )
    await session.commit()
    return inserted
