"""
Module: closing_engines.vouchers
Responsibility:
    Assemble debit/credit line sets produced by any engine into one
    ``Voucher``: compute the header total, generate the document number
    ``<PREFIX>-<YYYY.MM>`` and reject empty or non-positive line sets.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Posting is done by
    ``closing_services.voucher_poster``.

Invariants enforced:
    - ``voucher.total_amount == sum(line.amount)``.
    - Every line amount is a positive int.
    - The posting date defaults to the last calendar day of the period;
      no clock access.

Failure modes:
    - EmptyVoucherError when no lines are given.
    - InvalidLineAmountError when any amount is <= 0 or not an int.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date

from closing_engines.tracer import traced_engine
from closing_kernel.domain.dtos import Voucher, VoucherLine, VoucherType
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import EmptyVoucherError, InvalidLineAmountError
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.vouchers")

DEFAULT_PREFIXES: dict[VoucherType, str] = {
    VoucherType.ALLOCATION: "PB",
    VoucherType.REVALUATION: "DG",
    VoucherType.CLOSING: "KC",
    VoucherType.REALLOCATION: "PBL",
}


def format_doc_no(prefix: str, period: Period, suffix: str = "") -> str:
    """``PB`` + 2024-05 -> ``PB-2024.05``; ``suffix`` is appended verbatim."""
    return f"{prefix}-{period.doc_suffix}{suffix}"


class VoucherBuilder:
    """
    Builds validated vouchers from engine output.

    Contract:
        ``build`` returns a ``Voucher`` whose lines are exactly the given
        lines, in order.
    """

    def __init__(self, prefixes: Mapping[VoucherType, str] | None = None):
        self._prefixes = dict(DEFAULT_PREFIXES)
        if prefixes:
            self._prefixes.update(prefixes)

    def doc_no(self, voucher_type: VoucherType, period: Period, suffix: str = "") -> str:
        return format_doc_no(self._prefixes[voucher_type], period, suffix)

    @staticmethod
    def validate_lines(doc_no: str, lines: Sequence[VoucherLine]) -> None:
        """
        Raises:
            EmptyVoucherError: no lines.
            InvalidLineAmountError: a line amount is not a positive int.
        """
        if not lines:
            raise EmptyVoucherError(doc_no)
        for index, line in enumerate(lines):
            if isinstance(line.amount, bool) or not isinstance(line.amount, int) or line.amount <= 0:
                raise InvalidLineAmountError(doc_no, index, line.amount)

    @traced_engine(
        "voucher_builder", "1.0",
        fingerprint_fields=("voucher_type", "period", "lines"),
    )
    def build(
        self,
        *,
        voucher_type: VoucherType,
        period: Period,
        lines: Sequence[VoucherLine],
        description: str,
        post_date: date | None = None,
        doc_date: date | None = None,
        doc_no: str | None = None,
    ) -> Voucher:
        """
        Build a voucher for ``period``.

        Args:
            voucher_type: Voucher family (drives the doc-number prefix).
            period: Accounting period the voucher belongs to.
            lines: Debit/credit pairs, each with a positive amount.
            description: Header description.
            post_date: Defaults to ``period.last_day``.
            doc_date: Defaults to ``post_date``.
            doc_no: Overrides the generated document number.
        """
        doc_no = doc_no or self.doc_no(voucher_type, period)
        self.validate_lines(doc_no, lines)

        post_date = post_date or period.last_day
        voucher = Voucher(
            doc_no=doc_no,
            doc_date=doc_date or post_date,
            post_date=post_date,
            description=description,
            voucher_type=voucher_type,
            total_amount=sum(line.amount for line in lines),
            lines=tuple(lines),
            period=period.key,
        )
        logger.info("voucher_built", extra={
            "doc_no": voucher.doc_no,
            "voucher_type": voucher_type.value,
            "line_count": len(voucher.lines),
            "total_amount": voucher.total_amount,
        })
        return voucher
