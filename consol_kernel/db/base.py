"""
Module: consol_kernel.db.base
Responsibility: Declarative base classes for the SQLAlchemy collaborator
    models.  Provides the string primary key convention, the type annotation
    map for consistent column types, and the TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest-level import target for the ORM
    models.  MUST NOT import from models/, repositories/, domain/ or outer
    layers.

Invariants enforced:
    - String primary keys: identifiers cross the domain boundary as plain
      strings; new rows default to a uuid4 rendered as text.
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(38, 9) for balances and ownership percentages.
      NEVER use float for monetary amounts or percentages.
    - Audit timestamps: TrackedBase provides created_at and updated_at.

Failure modes:
    - IntegrityError on a duplicate primary key insert.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    """Generate a fresh identifier for a collaborator row."""
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base (or TrackedBase).  Base provides
        a string primary key and a type_annotation_map that keeps column
        types consistent across the schema.

    Guarantees:
        - id is a String(64), defaulting to a uuid4 string.
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - date maps to Date.
    """

    type_annotation_map: ClassVar[dict] = {
        # 38 digits total, 9 decimal places
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        str: String(255),
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=new_id,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at is set on INSERT and refreshed on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
