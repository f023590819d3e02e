"""
Module: closing_kernel.models.voucher
Responsibility: ORM persistence for vouchers and their debit/credit lines --
    the rows every balance in the reference ledger is derived from.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One line = one debit/credit pair with a positive whole amount
      (CHECK constraint).
    - Header total equals the sum of its lines (checked by VoucherWriter
      before flush; ``is_balanced`` is the read-side convenience).
"""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from closing_kernel.db.base import TrackedBase, UUIDString


class VoucherStatus(str, Enum):
    """Lifecycle status of a voucher."""

    POSTED = "POSTED"
    VOID = "VOID"


class VoucherEntry(TrackedBase):
    """
    Voucher header.

    Guarantees:
        - ``voucher_type`` is one of the VoucherType values.
        - Lines are ordered by ``line_seq``.
    """

    __tablename__ = "vouchers"

    __table_args__ = (
        Index("idx_voucher_type_post_date", "voucher_type", "post_date"),
        Index("idx_voucher_type_period", "voucher_type", "period"),
        Index("idx_voucher_doc_no", "doc_no"),
    )

    doc_no: Mapped[str] = mapped_column(String(50), nullable=False)

    doc_date: Mapped[date] = mapped_column(Date, nullable=False)

    post_date: Mapped[date] = mapped_column(Date, nullable=False)

    # YYYY-MM the voucher belongs to; post_date may fall after it
    period: Mapped[str] = mapped_column(String(7), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    voucher_type: Mapped[str] = mapped_column(String(20), nullable=False)

    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=VoucherStatus.POSTED.value,
    )

    lines: Mapped[list["VoucherItem"]] = relationship(
        back_populates="voucher",
        cascade="all, delete-orphan",
        order_by="VoucherItem.line_seq",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<VoucherEntry {self.doc_no} {self.voucher_type} {self.total_amount}>"

    @property
    def is_balanced(self) -> bool:
        return sum(line.amount for line in self.lines) == self.total_amount


class VoucherItem(TrackedBase):
    """One debit/credit pair within a voucher."""

    __tablename__ = "voucher_items"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_voucher_item_amount_positive"),
        Index("idx_voucher_item_voucher", "voucher_id"),
        Index("idx_voucher_item_debit", "debit_account"),
        Index("idx_voucher_item_credit", "credit_account"),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vouchers.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    debit_account: Mapped[str] = mapped_column(String(20), nullable=False)

    credit_account: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Prepaid item id, invoice id, ... that produced this line
    source_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    source_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    voucher: Mapped["VoucherEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<VoucherItem Dr {self.debit_account} Cr {self.credit_account} {self.amount}>"
