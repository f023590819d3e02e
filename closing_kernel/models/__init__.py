"""ORM models of the reference ledger."""

from closing_kernel.models.account import Account
from closing_kernel.models.allocation import AllocationHistory, PrepaidItemRecord
from closing_kernel.models.debt import DebtAllocation, Invoice
from closing_kernel.models.voucher import VoucherEntry, VoucherItem, VoucherStatus

__all__ = [
    "Account",
    "AllocationHistory",
    "DebtAllocation",
    "Invoice",
    "PrepaidItemRecord",
    "VoucherEntry",
    "VoucherItem",
    "VoucherStatus",
]
