"""
DebtAllocationService -- applies and reverses payment allocations.

Responsibility:
    Inserts signed allocation rows for a payment.  Reversal inserts negative
    rows, leaving an append-only trail.

Invariants enforced:
    - Allocation amount is within [1, invoice remaining].
    - Reversal amount is within [1, amount this payment has allocated to
      the invoice].
    - All rows of one call are written in the caller's transaction, so a
      bad line rejects the whole submission.

Failure modes:
    - PostingFailure for unknown invoices or out-of-range amounts.
"""

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import DebtAllocationLine
from closing_kernel.exceptions import PostingFailure
from closing_kernel.logging_config import get_logger
from closing_kernel.models.debt import DebtAllocation, Invoice
from closing_kernel.selectors.debt_selector import DebtSelector
from closing_kernel.services.base import BaseService

logger = get_logger("services.debt_allocation")


class DebtAllocationService(BaseService[DebtAllocation]):

    def __init__(self, session: Session, actor: str = "system"):
        super().__init__(session)
        self._actor = actor
        self._selector = DebtSelector(session)

    def _invoice(self, invoice_code: str, operation: str) -> Invoice:
        invoice = self.session.scalars(
            select(Invoice).where(Invoice.invoice_code == invoice_code)
        ).first()
        if invoice is None:
            raise PostingFailure(operation, f"unknown invoice {invoice_code}")
        return invoice

    def allocate(self, payment_id: str, items: Sequence[DebtAllocationLine]) -> None:
        for item in items:
            invoice = self._invoice(item.invoice_id, "save_allocations")
            remaining = self._selector.remaining_on(invoice)
            if not 0 < item.allocated_amount <= remaining:
                raise PostingFailure(
                    "save_allocations",
                    f"amount {item.allocated_amount} for invoice {item.invoice_id} "
                    f"is outside (0, {remaining}]",
                )
            self.session.add(
                DebtAllocation(
                    payment_id=payment_id,
                    invoice_id=invoice.id,
                    amount=item.allocated_amount,
                    created_by=self._actor,
                )
            )
            # Flush per line so a repeated invoice sees the previous row
            self.session.flush()

        logger.info("debt_allocations_saved", extra={
            "payment_id": payment_id,
            "line_count": len(items),
            "total": sum(i.allocated_amount for i in items),
        })

    def reverse(self, payment_id: str, items: Sequence[DebtAllocationLine]) -> None:
        for item in items:
            invoice = self._invoice(item.invoice_id, "reverse_allocations")
            allocated = self._selector.allocated_by_payment_to(payment_id, invoice)
            if not 0 < item.allocated_amount <= allocated:
                raise PostingFailure(
                    "reverse_allocations",
                    f"reversal {item.allocated_amount} for invoice {item.invoice_id} "
                    f"is outside (0, {allocated}]",
                )
            self.session.add(
                DebtAllocation(
                    payment_id=payment_id,
                    invoice_id=invoice.id,
                    amount=-item.allocated_amount,
                    created_by=self._actor,
                )
            )
            self.session.flush()

        logger.info("debt_allocations_reversed", extra={
            "payment_id": payment_id,
            "line_count": len(items),
            "total": sum(i.allocated_amount for i in items),
        })
