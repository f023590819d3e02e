"""
VoucherWriter -- persists a validated voucher and its lines.

Responsibility:
    Re-checks the voucher invariants at the storage boundary and writes the
    header plus all lines in the caller's transaction.

Invariants enforced:
    - Non-empty, positive lines; header total equals the sum of lines.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - EmptyVoucherError, InvalidLineAmountError, UnbalancedVoucherError.
"""

from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import PostedVoucher, Voucher
from closing_kernel.exceptions import (
    EmptyVoucherError,
    InvalidLineAmountError,
    UnbalancedVoucherError,
)
from closing_kernel.logging_config import get_logger
from closing_kernel.models.voucher import VoucherEntry, VoucherItem, VoucherStatus
from closing_kernel.selectors.ledger_selector import to_posted_voucher
from closing_kernel.services.base import BaseService

logger = get_logger("services.voucher_writer")


class VoucherWriter(BaseService[VoucherEntry]):
    """Writes vouchers; the caller controls the transaction."""

    def __init__(self, session: Session, actor: str = "system"):
        super().__init__(session)
        self._actor = actor

    def write(self, voucher: Voucher) -> PostedVoucher:
        if not voucher.lines:
            raise EmptyVoucherError(voucher.doc_no)
        for index, line in enumerate(voucher.lines):
            if line.amount <= 0:
                raise InvalidLineAmountError(voucher.doc_no, index, line.amount)
        if not voucher.is_balanced:
            raise UnbalancedVoucherError(
                voucher.doc_no, voucher.lines_total, voucher.total_amount
            )

        entry = VoucherEntry(
            doc_no=voucher.doc_no,
            doc_date=voucher.doc_date,
            post_date=voucher.post_date,
            period=voucher.period_key,
            description=voucher.description,
            voucher_type=voucher.voucher_type.value,
            total_amount=voucher.total_amount,
            status=VoucherStatus.POSTED.value,
            created_by=self._actor,
        )
        entry.lines = [
            VoucherItem(
                line_seq=seq,
                description=line.description,
                debit_account=line.debit_account,
                credit_account=line.credit_account,
                amount=line.amount,
                source_ref=line.source_ref,
                source_type=line.source_type,
                source_name=line.source_name,
                created_by=self._actor,
            )
            for seq, line in enumerate(voucher.lines)
        ]
        self.session.add(entry)
        self.session.flush()

        logger.info("voucher_written", extra={
            "voucher_id": str(entry.id),
            "doc_no": entry.doc_no,
            "voucher_type": entry.voucher_type,
            "total_amount": entry.total_amount,
            "line_count": len(entry.lines),
        })
        return to_posted_voucher(entry)
