"""
SqlLedger -- reference SQLAlchemy implementation of ``LedgerGateway``.

Responsibility:
    Serves balance, allocation-history and debt queries and persists
    vouchers, history rows and payment allocations.  Each public call runs
    in its own ``session_scope`` so a voucher and its lines commit
    atomically, and concurrent callers (the duplicate-check fan-out) each
    get their own session.

Architecture position:
    Kernel > Services -- imperative shell around selectors and writers.

Failure modes:
    - TransientFetchError wraps any SQLAlchemyError raised by a read.
    - PostingFailure wraps any SQLAlchemyError raised by a write.
    - Domain errors from writers (ValidationError subclasses,
      PostingFailure) propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from closing_kernel.db.engine import session_scope
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
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import PostingFailure, TransientFetchError
from closing_kernel.logging_config import get_logger
from closing_kernel.models.account import Account
from closing_kernel.models.allocation import PrepaidItemRecord
from closing_kernel.models.debt import Invoice
from closing_kernel.selectors.allocation_selector import AllocationSelector
from closing_kernel.selectors.debt_selector import DebtSelector
from closing_kernel.selectors.ledger_selector import LedgerSelector
from closing_kernel.services.allocation_history_service import (
    AllocationHistoryService,
)
from closing_kernel.services.debt_allocation_service import DebtAllocationService
from closing_kernel.services.voucher_writer import VoucherWriter

logger = get_logger("services.sql_ledger")

T = TypeVar("T")


class SqlLedger:
    """
    Ledger gateway backed by a SQLAlchemy session factory.

    Contract:
        Satisfies ``closing_kernel.domain.ledger.LedgerGateway``.

    Non-goals:
        - No multi-tenant isolation or authentication.
    """

    def __init__(self, session_factory: sessionmaker[Session], actor: str = "system"):
        self._session_factory = session_factory
        self._actor = actor

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    def _read(self, operation: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return fn(session)
        except SQLAlchemyError as e:
            logger.warning("ledger_read_failed", extra={
                "operation": operation,
                "error": str(e),
            })
            raise TransientFetchError(operation, str(e)) from e

    def _write(self, operation: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return fn(session)
        except SQLAlchemyError as e:
            logger.error("ledger_write_failed", extra={
                "operation": operation,
                "error": str(e),
            })
            raise PostingFailure(operation, str(e)) from e

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def get_account_balances(self, as_of: date | None = None) -> list[AccountBalance]:
        return self._read(
            "get_account_balances",
            lambda s: LedgerSelector(s).account_balances(as_of),
        )

    # ------------------------------------------------------------------
    # Prepaid allocation history
    # ------------------------------------------------------------------

    def get_allocatable_items(self, period: str) -> list[PrepaidItem]:
        return self._read(
            "get_allocatable_items",
            lambda s: AllocationSelector(s).allocatable_items(period),
        )

    def check_allocation_duplicate(self, period: str, item_id: str) -> bool:
        return self._read(
            "check_allocation_duplicate",
            lambda s: AllocationSelector(s).is_allocated(period, item_id),
        )

    def record_allocation(self, record: AllocationRecord) -> None:
        self._write(
            "record_allocation",
            lambda s: AllocationHistoryService(s, self._actor).record(record),
        )

    # ------------------------------------------------------------------
    # Debt allocation
    # ------------------------------------------------------------------

    def get_unpaid_invoices(self, partner_code: str) -> list[OutstandingInvoice]:
        return self._read(
            "get_unpaid_invoices",
            lambda s: DebtSelector(s).unpaid_invoices(partner_code),
        )

    def get_allocations_by_payment(self, payment_id: str) -> list[PaymentAllocation]:
        return self._read(
            "get_allocations_by_payment",
            lambda s: DebtSelector(s).allocations_by_payment(payment_id),
        )

    def save_allocations(
        self, payment_id: str, items: Sequence[DebtAllocationLine]
    ) -> None:
        self._write(
            "save_allocations",
            lambda s: DebtAllocationService(s, self._actor).allocate(payment_id, items),
        )

    def reverse_allocations(
        self, payment_id: str, items: Sequence[DebtAllocationLine]
    ) -> None:
        self._write(
            "reverse_allocations",
            lambda s: DebtAllocationService(s, self._actor).reverse(payment_id, items),
        )

    # ------------------------------------------------------------------
    # Vouchers
    # ------------------------------------------------------------------

    def post_voucher(self, voucher: Voucher) -> PostedVoucher:
        return self._write(
            "post_voucher",
            lambda s: VoucherWriter(s, self._actor).write(voucher),
        )

    def find_vouchers(
        self, voucher_type: VoucherType, period: str
    ) -> list[PostedVoucher]:
        return self._read(
            "find_vouchers",
            lambda s: LedgerSelector(s).vouchers_for_period(
                voucher_type, Period.parse(period)
            ),
        )

    def get_voucher(self, voucher_id: UUID) -> PostedVoucher:
        posted = self._read(
            "get_voucher", lambda s: LedgerSelector(s).voucher(voucher_id)
        )
        if posted is None:
            raise TransientFetchError("get_voucher", f"voucher {voucher_id} not found")
        return posted

    # ------------------------------------------------------------------
    # Master data (opening setup)
    # ------------------------------------------------------------------

    def add_account(self, code: str, name: str) -> None:
        def _add(session: Session) -> None:
            existing = session.scalars(select(Account).where(Account.code == code)).first()
            if existing is None:
                session.add(Account(code=code, name=name))
            else:
                existing.name = name

        self._write("add_account", _add)

    def add_prepaid_item(
        self,
        item_code: str,
        name: str,
        cost: int,
        life_months: int,
        opening_allocated: int = 0,
        source_account: str = "242",
        item_type: str = "prepaid",
    ) -> None:
        self._write(
            "add_prepaid_item",
            lambda s: s.add(
                PrepaidItemRecord(
                    item_code=item_code,
                    name=name,
                    cost=cost,
                    life_months=life_months,
                    opening_allocated=opening_allocated,
                    source_account=source_account,
                    item_type=item_type,
                    created_by=self._actor,
                )
            ),
        )

    def add_invoice(
        self,
        invoice_code: str,
        partner_code: str,
        doc_date: date,
        total_amount: int,
        doc_no: str | None = None,
    ) -> None:
        self._write(
            "add_invoice",
            lambda s: s.add(
                Invoice(
                    invoice_code=invoice_code,
                    doc_no=doc_no or invoice_code,
                    doc_date=doc_date,
                    partner_code=partner_code,
                    total_amount=total_amount,
                    created_by=self._actor,
                )
            ),
        )
