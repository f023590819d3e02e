"""
Module: closing_kernel.models.allocation
Responsibility: Prepaid-expense source items (account 242) and the allocation
    history used to detect duplicate postings for a period.

Invariants enforced:
    - At most one history row per (period, item_id)
      (UNIQUE ``uq_allocation_period_item``).
    - Accumulated allocation of an item is derived: ``opening_allocated``
      plus the sum of its history rows.
"""

from uuid import UUID

from sqlalchemy import BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import TrackedBase, UUIDString


class PrepaidItemRecord(TrackedBase):
    """A prepaid cost being amortized over ``life_months``."""

    __tablename__ = "prepaid_items"

    __table_args__ = (
        UniqueConstraint("item_code", name="uq_prepaid_item_code"),
    )

    item_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    item_type: Mapped[str] = mapped_column(String(30), nullable=False, default="prepaid")

    source_account: Mapped[str] = mapped_column(String(20), nullable=False, default="242")

    cost: Mapped[int] = mapped_column(BigInteger, nullable=False)

    life_months: Mapped[int] = mapped_column(Integer, nullable=False)

    # Allocated before this ledger started tracking history
    opening_allocated: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    active: Mapped[bool] = mapped_column(default=True, nullable=False)


class AllocationHistory(TrackedBase):
    """One posted allocation line."""

    __tablename__ = "allocation_history"

    __table_args__ = (
        UniqueConstraint("period", "item_id", name="uq_allocation_period_item"),
        Index("idx_allocation_history_item", "item_id"),
    )

    period: Mapped[str] = mapped_column(String(7), nullable=False)

    item_id: Mapped[str] = mapped_column(String(50), nullable=False)

    item_type: Mapped[str] = mapped_column(String(30), nullable=False, default="prepaid")

    item_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    target_account: Mapped[str] = mapped_column(String(20), nullable=False)

    voucher_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
