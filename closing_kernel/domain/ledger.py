"""
LedgerGateway -- the capability surface the closing engine consumes.

Responsibility:
    Declares the external ledger's balance, allocation-history, debt and
    posting operations as a Protocol.  Workflows depend on this protocol
    only; ``closing_kernel.services.sql_ledger.SqlLedger`` is the bundled
    SQLAlchemy implementation.

Contract for implementations:
    - Reads raise ``TransientFetchError`` on failure.
    - Writes raise ``PostingFailure`` on rejection and are atomic per call
      (a voucher is persisted with all of its lines or not at all).
"""

from __future__ import annotations

from typing import Protocol, Sequence
from uuid import UUID

from closing_kernel.domain.dtos import (
    AccountBalance,
    AllocationRecord,
    DebtAllocationLine,
    OutstandingInvoice,
    PaymentAllocation,
    PostedVoucher,
    PrepaidItem,
    Voucher,
    VoucherType,
)


class LedgerGateway(Protocol):
    """Protocol for the external ledger service."""

    # Balances -------------------------------------------------------------

    def get_account_balances(self) -> list[AccountBalance]: ...

    # Prepaid allocation history --------------------------------------------

    def get_allocatable_items(self, period: str) -> list[PrepaidItem]: ...

    def check_allocation_duplicate(self, period: str, item_id: str) -> bool: ...

    def record_allocation(self, record: AllocationRecord) -> None: ...

    # Debt allocation --------------------------------------------------------

    def get_unpaid_invoices(self, partner_code: str) -> list[OutstandingInvoice]: ...

    def get_allocations_by_payment(self, payment_id: str) -> list[PaymentAllocation]: ...

    def save_allocations(
        self, payment_id: str, items: Sequence[DebtAllocationLine]
    ) -> None: ...

    def reverse_allocations(
        self, payment_id: str, items: Sequence[DebtAllocationLine]
    ) -> None: ...

    # Vouchers ---------------------------------------------------------------

    def post_voucher(self, voucher: Voucher) -> PostedVoucher: ...

    def find_vouchers(
        self, voucher_type: VoucherType, period: str
    ) -> list[PostedVoucher]: ...

    def get_voucher(self, voucher_id: UUID) -> PostedVoucher: ...
