"""
DTOs -- frozen value objects exchanged between ledger, engines and workflows.

Responsibility:
    Defines the data shapes read from the ledger (balances, prepaid items,
    invoices), the shapes computed by the engines (allocation items, FX
    balances, closing lines) and the vouchers / history records written
    back.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.  Imported by every layer.

Invariants enforced:
    - All amounts are ``int`` (whole local-currency units).
    - ``Voucher.total_amount == sum(line.amount)`` for vouchers produced by
      ``VoucherBuilder``.
    - DTOs are immutable; previews are edited with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from closing_kernel.domain.accounts import AccountClass
from closing_kernel.domain.money import round_amount


# ---------------------------------------------------------------------------
# Ledger snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountBalance:
    """Net balance (debits - credits) of one account."""

    code: str
    name: str
    net_balance: int
    category: AccountClass = AccountClass.OTHER


@dataclass(frozen=True)
class PrepaidItem:
    """A prepaid-expense source item as reported by the ledger."""

    item_id: str
    name: str
    cost: int
    life_months: int
    accumulated: int = 0
    remaining_value: int | None = None
    item_type: str = "prepaid"
    source_account: str = "242"

    @property
    def remaining(self) -> int:
        if self.remaining_value is not None:
            return self.remaining_value
        return self.cost - self.accumulated


# ---------------------------------------------------------------------------
# Allocation (prepaid expense amortization)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllocationItem:
    """
    One row of the allocation preview.

    Guarantees:
        - ``0 <= proposed_amount <= max(0, remaining_value)``.
        - ``periods_remaining == max(0, life_months - periods_allocated)``.
    """

    item_id: str
    name: str
    source_account: str
    total_cost: int
    life_months: int
    monthly_amount: int
    periods_allocated: int
    periods_remaining: int
    remaining_value: int
    proposed_amount: int
    already_allocated: bool = False
    item_type: str = "prepaid"

    @property
    def is_selectable(self) -> bool:
        return not self.already_allocated and self.remaining_value > 0


@dataclass(frozen=True)
class DuplicateWarning:
    """Non-fatal notice that an item is already allocated for the period."""

    period: str
    item_id: str
    item_name: str

    @property
    def message(self) -> str:
        return f"{self.item_name} is already allocated for period {self.period}"


@dataclass(frozen=True)
class AllocationRecord:
    """History row written once per posted allocation line."""

    period: str
    item_id: str
    amount: int
    target_account: str
    voucher_id: UUID | None = None
    item_type: str = "prepaid"
    item_name: str = ""


# ---------------------------------------------------------------------------
# Foreign-currency revaluation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FxAccountBalance:
    """
    A monetary account restated at a new exchange rate.

    ``foreign_amount`` is entered by the operator: the ledger tracks local
    currency only.
    """

    code: str
    name: str
    book_value_local: int
    category: AccountClass = AccountClass.OTHER
    foreign_amount: Decimal | None = None
    new_rate: Decimal | None = None

    @property
    def has_foreign_amount(self) -> bool:
        return self.foreign_amount is not None and self.foreign_amount > 0

    @property
    def book_rate(self) -> Decimal:
        if not self.has_foreign_amount:
            return Decimal("0")
        return Decimal(self.book_value_local) / self.foreign_amount

    @property
    def revalued_value(self) -> int:
        if not self.has_foreign_amount or self.new_rate is None:
            return 0
        return round_amount(self.foreign_amount * self.new_rate)

    @property
    def diff(self) -> int:
        if not self.has_foreign_amount or self.new_rate is None:
            return 0
        return round_amount(self.foreign_amount * self.new_rate - self.book_value_local)


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClosingLine:
    """A revenue or expense balance to be transferred to 911."""

    code: str
    name: str
    balance: int
    category: AccountClass


# ---------------------------------------------------------------------------
# Vouchers
# ---------------------------------------------------------------------------


class VoucherType(str, Enum):
    ALLOCATION = "ALLOCATION"
    REVALUATION = "REVALUATION"
    CLOSING = "CLOSING"
    REALLOCATION = "REALLOCATION"


@dataclass(frozen=True)
class VoucherLine:
    """One debit/credit pair."""

    description: str
    debit_account: str
    credit_account: str
    amount: int
    source_ref: str | None = None  # e.g. prepaid item id
    source_type: str | None = None  # e.g. "prepaid", "account"
    source_name: str | None = None


@dataclass(frozen=True)
class Voucher:
    doc_no: str
    doc_date: date
    post_date: date
    description: str
    voucher_type: VoucherType
    total_amount: int
    lines: tuple[VoucherLine, ...]
    # Accounting period; may differ from the month of post_date
    period: str | None = None

    @property
    def period_key(self) -> str:
        if self.period:
            return self.period
        return f"{self.post_date.year:04d}-{self.post_date.month:02d}"

    def account_movements(self) -> dict[str, int]:
        """Net movement per account (debit positive, credit negative)."""
        movements: dict[str, int] = {}
        for line in self.lines:
            movements[line.debit_account] = movements.get(line.debit_account, 0) + line.amount
            movements[line.credit_account] = movements.get(line.credit_account, 0) - line.amount
        return movements

    @property
    def lines_total(self) -> int:
        return sum(line.amount for line in self.lines)

    @property
    def is_balanced(self) -> bool:
        """Lines sum to the header total and every movement nets to zero."""
        return (
            self.lines_total == self.total_amount
            and sum(self.account_movements().values()) == 0
        )


@dataclass(frozen=True)
class PostedVoucher:
    """Ledger acknowledgement of a posted voucher."""

    voucher_id: UUID
    doc_no: str
    voucher_type: VoucherType
    post_date: date
    total_amount: int
    description: str = ""
    lines: tuple[VoucherLine, ...] = ()
    period: str = ""


# ---------------------------------------------------------------------------
# Debt allocation (payment vs invoice)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Payment:
    """A payment voucher; ``payment_id`` is None until it is saved."""

    partner_code: str
    amount: int
    payment_id: str | None = None

    @property
    def is_persisted(self) -> bool:
        return bool(self.payment_id)


@dataclass(frozen=True)
class OutstandingInvoice:
    invoice_id: str
    doc_no: str
    doc_date: date
    total_amount: int
    remaining: int


@dataclass(frozen=True)
class PaymentAllocation:
    """Net amount a payment currently has allocated to one invoice."""

    invoice_id: str
    doc_no: str
    doc_date: date
    total_amount: int
    allocated_amount: int


@dataclass(frozen=True)
class DebtAllocationLine:
    invoice_id: str
    allocated_amount: int


@dataclass(frozen=True)
class DebtSubmission:
    """What was sent to the ledger's allocation ledger."""

    payment_id: str
    lines: tuple[DebtAllocationLine, ...]
    reversal: bool = False

    @property
    def total(self) -> int:
        return sum(line.allocated_amount for line in self.lines)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step of the period-close macro."""

    code: str
    name: str
    status: str  # "success", "skipped", "manual" or "error"
    info: str = ""
    voucher: PostedVoucher | None = None
    details: dict = field(default_factory=dict)
