"""
Module: closing_engines.debt
Responsibility:
    Match a payment against a partner's outstanding invoices oldest-first
    (FIFO) and build the symmetric reversal of an existing allocation.
    Operator edits are validated against per-invoice bounds and the
    result is reduced to ``(invoice_id, amount)`` submissions.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - FIFO: ``take_i = min(remaining_i, P - sum(take_j for j < i))``, so the
      suggestion never exceeds the payment.
    - Allocate edits stay within ``[0, invoice.remaining]``; reversal edits
      within ``[0, previously_allocated]``.
    - A submission holds only positive amounts, and an allocation never
      exceeds the payment total.
    - Reversal requires a persisted payment.

Failure modes:
    - AmountOutOfBoundsError for an edit outside its bounds.
    - EmptySelectionError when every amount is zero.
    - AllocationExceedsPaymentError when allocations exceed the payment.
    - PaymentNotPersistedError when reversing an unsaved payment.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date

from closing_engines.tracer import traced_engine
from closing_kernel.domain.dtos import (
    DebtAllocationLine,
    DebtSubmission,
    OutstandingInvoice,
    Payment,
    PaymentAllocation,
)
from closing_kernel.exceptions import (
    AllocationExceedsPaymentError,
    AmountOutOfBoundsError,
    EmptySelectionError,
    PaymentNotPersistedError,
)
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.debt")

# Payment id used when allocating against a payment that is not saved yet.
UNSAVED_PAYMENT_ID = "NEW_PAYMENT"


@dataclass(frozen=True)
class DebtCandidate:
    """One invoice row of a debt plan; ``upper`` bounds ``amount``."""

    invoice_id: str
    doc_no: str
    doc_date: date
    total_amount: int
    upper: int
    amount: int = 0


@dataclass(frozen=True)
class DebtPlan:
    """Editable allocation (or reversal) proposal for one payment."""

    payment: Payment
    candidates: tuple[DebtCandidate, ...]
    reversal: bool = False

    @property
    def workflow(self) -> str:
        return "debt_reversal" if self.reversal else "debt_allocation"

    @property
    def total(self) -> int:
        return sum(c.amount for c in self.candidates)

    def amounts(self) -> dict[str, int]:
        return {c.invoice_id: c.amount for c in self.candidates}


def fifo_take(payment_amount: int, remainings: Sequence[int]) -> list[int]:
    """Amounts taken from each remaining balance, oldest first."""
    left = max(0, payment_amount)
    taken = []
    for remaining in remainings:
        take = min(left, max(0, remaining))
        taken.append(take)
        left -= take
    return taken


class DebtAllocationEngine:
    """Payment-to-invoice matcher."""

    @traced_engine("debt_allocation", "1.0", fingerprint_fields=("payment", "invoices"))
    def suggest_allocation(
        self,
        *,
        payment: Payment,
        invoices: Sequence[OutstandingInvoice],
    ) -> DebtPlan:
        """FIFO suggestion over invoices sorted ascending by date."""
        ordered = sorted(invoices, key=lambda inv: (inv.doc_date, inv.doc_no))
        taken = fifo_take(payment.amount, [inv.remaining for inv in ordered])
        candidates = tuple(
            DebtCandidate(
                invoice_id=inv.invoice_id,
                doc_no=inv.doc_no,
                doc_date=inv.doc_date,
                total_amount=inv.total_amount,
                upper=inv.remaining,
                amount=take,
            )
            for inv, take in zip(ordered, taken)
        )
        plan = DebtPlan(payment=payment, candidates=candidates)
        logger.info("debt_allocation_suggested", extra={
            "partner_code": payment.partner_code,
            "payment_amount": payment.amount,
            "invoice_count": len(candidates),
            "suggested_total": plan.total,
        })
        return plan

    @traced_engine("debt_reversal", "1.0", fingerprint_fields=("payment", "allocations"))
    def suggest_reversal(
        self,
        *,
        payment: Payment,
        allocations: Sequence[PaymentAllocation],
    ) -> DebtPlan:
        """
        Full reversal of what the payment currently has allocated.

        Raises:
            PaymentNotPersistedError: payment has no id yet.
        """
        if not payment.is_persisted:
            raise PaymentNotPersistedError()
        candidates = tuple(
            DebtCandidate(
                invoice_id=alloc.invoice_id,
                doc_no=alloc.doc_no,
                doc_date=alloc.doc_date,
                total_amount=alloc.total_amount,
                upper=alloc.allocated_amount,
                amount=alloc.allocated_amount,
            )
            for alloc in allocations
        )
        plan = DebtPlan(payment=payment, candidates=candidates, reversal=True)
        logger.info("debt_reversal_suggested", extra={
            "payment_id": payment.payment_id,
            "invoice_count": len(candidates),
            "suggested_total": plan.total,
        })
        return plan

    @staticmethod
    def with_amount(plan: DebtPlan, invoice_id: str, amount: int) -> DebtPlan:
        """
        Apply an operator edit.

        Raises:
            AmountOutOfBoundsError: amount outside ``[0, upper]``.
            KeyError: invoice is not part of the plan.
        """
        updated = []
        found = False
        for candidate in plan.candidates:
            if candidate.invoice_id == invoice_id:
                found = True
                if not 0 <= amount <= candidate.upper:
                    raise AmountOutOfBoundsError(invoice_id, amount, 0, candidate.upper)
                candidate = replace(candidate, amount=amount)
            updated.append(candidate)
        if not found:
            raise KeyError(invoice_id)
        return replace(plan, candidates=tuple(updated))

    @staticmethod
    def submission(plan: DebtPlan) -> DebtSubmission:
        """
        Reduce a plan to the positive ``(invoice_id, amount)`` pairs.

        Raises:
            EmptySelectionError: nothing to submit.
            AllocationExceedsPaymentError: allocation above payment total.
            PaymentNotPersistedError: reversal of an unsaved payment.
        """
        lines = tuple(
            DebtAllocationLine(invoice_id=c.invoice_id, allocated_amount=c.amount)
            for c in plan.candidates
            if c.amount > 0
        )
        if not lines:
            raise EmptySelectionError(plan.workflow)

        if plan.reversal:
            if not plan.payment.is_persisted:
                raise PaymentNotPersistedError()
        else:
            total = sum(line.allocated_amount for line in lines)
            if total > plan.payment.amount:
                raise AllocationExceedsPaymentError(total, plan.payment.amount)

        return DebtSubmission(
            payment_id=plan.payment.payment_id or UNSAVED_PAYMENT_ID,
            lines=lines,
            reversal=plan.reversal,
        )
