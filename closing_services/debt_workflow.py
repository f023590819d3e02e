"""
closing_services.debt_workflow -- Payment-to-invoice allocation and reversal.

Responsibility:
    Load a partner's open invoices (or a payment's existing allocations),
    hand them to ``DebtAllocationEngine`` for the FIFO / full-reversal
    suggestion, apply operator edits and submit the result to the
    ledger's allocation ledger in one call.

Architecture position:
    Services -- imperative shell over ``DebtAllocationEngine``.

Failure modes:
    - PaymentNotPersistedError before any read when reversing an unsaved
      payment.
    - AmountOutOfBoundsError, EmptySelectionError,
      AllocationExceedsPaymentError before submission.
    - TransientFetchError / PostingFailure from the ledger.
"""

from __future__ import annotations

from closing_engines.debt import DebtAllocationEngine, DebtPlan
from closing_kernel.domain.dtos import DebtSubmission, Payment
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.exceptions import PaymentNotPersistedError, PostingFailure
from closing_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.debt")


class DebtWorkflow:
    def __init__(self, ledger: LedgerGateway, engine: DebtAllocationEngine | None = None):
        self._ledger = ledger
        self._engine = engine or DebtAllocationEngine()

    def open_allocation(self, payment: Payment) -> DebtPlan:
        with LogContext.bind(workflow="debt_allocation"):
            invoices = self._ledger.get_unpaid_invoices(payment.partner_code)
            return self._engine.suggest_allocation(payment=payment, invoices=invoices)

    def open_reversal(self, payment: Payment) -> DebtPlan:
        if not payment.is_persisted:
            raise PaymentNotPersistedError()
        with LogContext.bind(workflow="debt_reversal"):
            allocations = self._ledger.get_allocations_by_payment(payment.payment_id)
            return self._engine.suggest_reversal(payment=payment, allocations=allocations)

    def edit_amount(self, plan: DebtPlan, invoice_id: str, amount: int) -> DebtPlan:
        return self._engine.with_amount(plan, invoice_id, amount)

    def submit(self, plan: DebtPlan) -> DebtSubmission:
        submission = self._engine.submission(plan)
        with LogContext.bind(workflow=plan.workflow):
            try:
                if submission.reversal:
                    self._ledger.reverse_allocations(submission.payment_id, submission.lines)
                else:
                    self._ledger.save_allocations(submission.payment_id, submission.lines)
            except PostingFailure:
                logger.error("debt_submission_failed", extra={
                    "payment_id": submission.payment_id,
                    "line_count": len(submission.lines),
                    "total": submission.total,
                }, exc_info=True)
                raise
            logger.info("debt_submission_saved", extra={
                "payment_id": submission.payment_id,
                "line_count": len(submission.lines),
                "total": submission.total,
                "reversal": submission.reversal,
            })
        return submission
