"""
Module: closing_kernel.db.base
Responsibility: Declarative base for the reference ledger tables.
Architecture position: Kernel > DB.  Imports nothing else from the kernel.

Invariants enforced:
    - Every table has a uuid4 ``id`` stored as text, so the same schema
      runs on SQLite and PostgreSQL.
    - Amounts are whole local-currency units: annotated ``int`` columns are
      BIGINT.  Nothing monetary is stored as float or NUMERIC.
"""

from datetime import date, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID on the Python side, CHAR-like text in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        int: BigInteger,
        date: Date,
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows written by a workflow: voucher headers, history, debt rows.

    ``created_at`` orders vouchers of the same type within a period (the
    latest close is the one a reversal mirrors); ``created_by`` is the
    ledger's operator.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")
