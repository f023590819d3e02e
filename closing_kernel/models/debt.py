"""
Module: closing_kernel.models.debt
Responsibility: Partner invoices and the signed allocation rows that match
    payments against them.

Invariants enforced:
    - Allocations are append-only.  A reversal inserts a negative row rather
      than deleting, so an invoice's remaining amount is always
      ``total_amount - sum(allocations.amount)``.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import TrackedBase, UUIDString


class Invoice(TrackedBase):
    """A receivable or payable document owed by/to a partner."""

    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoice_partner_date", "partner_code", "doc_date"),
    )

    invoice_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)

    doc_date: Mapped[date] = mapped_column(Date, nullable=False)

    partner_code: Mapped[str] = mapped_column(String(50), nullable=False)

    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)


class DebtAllocation(TrackedBase):
    """Signed amount of a payment applied to an invoice."""

    __tablename__ = "debt_allocations"

    __table_args__ = (
        Index("idx_debt_allocation_payment", "payment_id"),
        Index("idx_debt_allocation_invoice", "invoice_id"),
    )

    payment_id: Mapped[str] = mapped_column(String(50), nullable=False)

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    allocated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
