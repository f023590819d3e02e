"""
closing_services.voucher_poster -- Period-lock gate and voucher submission.

Responsibility:
    The single path from a built voucher to the ledger.  Checks the period
    lock and the voucher's shape before any I/O, submits it, and logs the
    outcome with the voucher id bound to the log context.

Architecture position:
    Services -- imperative shell around ``LedgerGateway.post_voucher``.

Invariants enforced:
    - ``post_date <= locked_until`` is rejected before the ledger is
      called.
    - Empty, non-positive or unbalanced vouchers never reach the ledger.

Failure modes:
    - LockedPeriodError, EmptyVoucherError, InvalidLineAmountError,
      UnbalancedVoucherError (no I/O performed).
    - PostingFailure from the ledger propagates after being logged; no
      retry is attempted.
"""

from __future__ import annotations

from datetime import date

from closing_engines.vouchers import VoucherBuilder
from closing_kernel.domain.dtos import PostedVoucher, Voucher
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.periods import PeriodLock
from closing_kernel.exceptions import (
    LockedPeriodError,
    PostingFailure,
    UnbalancedVoucherError,
)
from closing_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.voucher_poster")


class VoucherPoster:
    """Validates and posts vouchers under a period lock."""

    def __init__(self, ledger: LedgerGateway, lock: PeriodLock | None = None):
        self._ledger = ledger
        self.lock = lock or PeriodLock()

    def ensure_open(self, post_date: date, operation: str = "post") -> date:
        try:
            return self.lock.ensure_open(post_date, operation)
        except LockedPeriodError:
            logger.warning("posting_blocked_by_lock", extra={
                "post_date": post_date,
                "locked_until": self.lock.locked_until,
                "operation": operation,
            })
            raise

    def post(self, voucher: Voucher) -> PostedVoucher:
        self.ensure_open(voucher.post_date, f"post {voucher.voucher_type.value.lower()}")
        VoucherBuilder.validate_lines(voucher.doc_no, voucher.lines)
        if not voucher.is_balanced:
            raise UnbalancedVoucherError(
                voucher.doc_no, voucher.lines_total, voucher.total_amount
            )

        try:
            posted = self._ledger.post_voucher(voucher)
        except PostingFailure:
            logger.error("voucher_post_failed", extra={
                "doc_no": voucher.doc_no,
                "voucher_type": voucher.voucher_type.value,
                "total_amount": voucher.total_amount,
            }, exc_info=True)
            raise

        with LogContext.bind(voucher_id=str(posted.voucher_id)):
            logger.info("voucher_posted", extra={
                "doc_no": posted.doc_no,
                "voucher_type": posted.voucher_type.value,
                "post_date": posted.post_date,
                "total_amount": posted.total_amount,
                "line_count": len(voucher.lines),
            })
        return posted
