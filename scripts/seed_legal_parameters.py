"""Seed script for the default legal parameter set.

Run with:
    python scripts/seed_legal_parameters.py
    python scripts/seed_legal_parameters.py --company-id <uuid> --effective-date 2024-01-01

Inserts the Panama social security, educational insurance and ISR defaults
for every active company (or one company) where the keys are absent.
Existing keys are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from paystub_engine.config import configure_logging
from paystub_engine.database import dispose_db, get_session
from paystub_engine.models import Company
from paystub_engine.services.legal_parameter_store import LegalParameterStore


async def seed_company(session: AsyncSession, company: Company, effective_date: date) -> int:
    inserted = await LegalParameterStore(session).ensure_default_parameters(
        company.company_id, effective_date
    )
    print(f"{company.name}: {inserted} parameter(s) created")
    return inserted


async def main(company_id: UUID | None, effective_date: date) -> None:
    """Run seed script."""
    print("Seeding legal parameters...")

    async with get_session() as session:
        query = select(Company).where(Company.is_active.is_(True)).order_by(Company.name)
        if company_id is not None:
            query = select(Company).where(Company.company_id == company_id)
        companies = (await session.execute(query)).scalars().all()
        if not companies:
            print("No matching companies found")

        total = 0
        for company in companies:
            total += await seed_company(session, company, effective_date)

    await dispose_db()
    print(f"\nDone! {total} legal parameter(s) seeded.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default legal parameters")
    parser.add_argument("--company-id", type=UUID, default=None)
    parser.add_argument(
        "--effective-date",
        type=date.fromisoformat,
        default=date(date.today().year, 1, 1),
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args.company_id, args.effective_date))
