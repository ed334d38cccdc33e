"""Declarative base and shared column types for the paystub schema."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Numeric, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Stored amounts are always cents; rates keep four decimals (8.7500 %).
MONEY = Numeric(12, 2)
RANGE = Numeric(14, 2)
RATE = Numeric(7, 4)


class Base(DeclarativeBase):
    """Base class for all ORM models.

    UUID columns use the generic ``Uuid`` type so the same models work on
    PostgreSQL and on the SQLite database the tests run against.
    """

    type_annotation_map = {
        UUID: Uuid(as_uuid=True),
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """Adds a database-populated ``created_at``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
