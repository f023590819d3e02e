"""
Module: closing_kernel.selectors.debt_selector
Responsibility: Outstanding invoices per partner and net allocations per
    payment, computed from signed allocation rows.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - ``remaining = total_amount - sum(allocations)``; invoices with nothing
      remaining are omitted.
    - Unpaid invoices are ordered oldest first (doc_date, doc_no) for FIFO.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import OutstandingInvoice, PaymentAllocation
from closing_kernel.models.debt import DebtAllocation, Invoice
from closing_kernel.selectors.base import BaseSelector


class DebtSelector(BaseSelector[DebtAllocation]):
    """Selector for invoice balances and payment allocations."""

    def __init__(self, session: Session):
        super().__init__(session)

    def unpaid_invoices(self, partner_code: str) -> list[OutstandingInvoice]:
        allocated = (
            select(
                DebtAllocation.invoice_id.label("invoice_id"),
                func.sum(DebtAllocation.amount).label("allocated"),
            )
            .group_by(DebtAllocation.invoice_id)
            .subquery()
        )
        remaining = Invoice.total_amount - func.coalesce(allocated.c.allocated, 0)
        query = (
            select(Invoice, remaining)
            .outerjoin(allocated, allocated.c.invoice_id == Invoice.id)
            .where(Invoice.partner_code == partner_code)
            .where(remaining > 0)
            .order_by(Invoice.doc_date, Invoice.doc_no)
        )
        return [
            OutstandingInvoice(
                invoice_id=invoice.invoice_code,
                doc_no=invoice.doc_no,
                doc_date=invoice.doc_date,
                total_amount=invoice.total_amount,
                remaining=int(left),
            )
            for invoice, left in self.session.execute(query).all()
        ]

    def allocations_by_payment(self, payment_id: str) -> list[PaymentAllocation]:
        net = func.sum(DebtAllocation.amount)
        query = (
            select(Invoice, net)
            .join(DebtAllocation, DebtAllocation.invoice_id == Invoice.id)
            .where(DebtAllocation.payment_id == payment_id)
            .group_by(Invoice.id)
            .having(net > 0)
            .order_by(Invoice.doc_date, Invoice.doc_no)
        )
        return [
            PaymentAllocation(
                invoice_id=invoice.invoice_code,
                doc_no=invoice.doc_no,
                doc_date=invoice.doc_date,
                total_amount=invoice.total_amount,
                allocated_amount=int(amount),
            )
            for invoice, amount in self.session.execute(query).all()
        ]

    def remaining_on(self, invoice: Invoice) -> int:
        allocated = self.session.scalar(
            select(func.coalesce(func.sum(DebtAllocation.amount), 0)).where(
                DebtAllocation.invoice_id == invoice.id
            )
        )
        return invoice.total_amount - int(allocated)

    def allocated_by_payment_to(self, payment_id: str, invoice: Invoice) -> int:
        allocated = self.session.scalar(
            select(func.coalesce(func.sum(DebtAllocation.amount), 0))
            .where(DebtAllocation.payment_id == payment_id)
            .where(DebtAllocation.invoice_id == invoice.id)
        )
        return int(allocated)
