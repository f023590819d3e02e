"""
closing_services.closing_workflow -- Period closing (P&L transfer) workflow.

Responsibility:
    Preview and post the CLOSING voucher that zeroes revenue and expense
    into 911 and transfers the result to 4212, report whether a period is
    closed, and reverse a close with a mirror voucher.

Architecture position:
    Services -- imperative shell over ``ClosingEngine``.

Invariants enforced:
    - The voucher is dated the last day of the explicitly given period.
    - The lock check runs before any ledger call on execute and reverse.
    - A period is closed at most once: each reversal voucher (doc number
      ending in ``-R``) re-opens one close.

Failure modes:
    - LockedPeriodError -- "period is locked until ..." for the operator.
    - PeriodAlreadyClosedError on a second execute.
    - NothingToPostError when there is nothing to close or reverse.
    - PostingFailure from the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from closing_config import ClosingConfig
from closing_engines.closing import ClosingEngine, ClosingResult
from closing_engines.vouchers import VoucherBuilder
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import PostedVoucher, VoucherType
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import NothingToPostError, PeriodAlreadyClosedError
from closing_kernel.logging_config import LogContext, get_logger
from closing_services.balance_reader import BalanceSnapshotReader
from closing_services.voucher_poster import VoucherPoster

logger = get_logger("services.closing")

REVERSAL_SUFFIX = "-R"


@dataclass(frozen=True)
class ClosingPreview:
    period: Period
    post_date: date
    result: ClosingResult

    @property
    def profit(self) -> int:
        return self.result.profit


@dataclass(frozen=True)
class ClosingStatus:
    period: Period
    closes: tuple[PostedVoucher, ...]
    reversals: tuple[PostedVoucher, ...]

    @property
    def is_closed(self) -> bool:
        return len(self.closes) > len(self.reversals)

    @property
    def last_close(self) -> PostedVoucher | None:
        return self.closes[-1] if self.closes else None


class ClosingWorkflow:
    def __init__(
        self,
        ledger: LedgerGateway,
        reader: BalanceSnapshotReader,
        poster: VoucherPoster,
        engine: ClosingEngine | None = None,
        builder: VoucherBuilder | None = None,
        clock: Clock | None = None,
    ):
        self._ledger = ledger
        self._reader = reader
        self._poster = poster
        self._engine = engine or ClosingEngine()
        self._builder = builder or VoucherBuilder()
        self._clock = clock or SystemClock()

    @classmethod
    def from_config(
        cls,
        ledger: LedgerGateway,
        config: ClosingConfig,
        clock: Clock | None = None,
    ) -> ClosingWorkflow:
        roles = config.roles
        return cls(
            ledger=ledger,
            reader=BalanceSnapshotReader(ledger, config.chart(), roles.prepaid_source),
            poster=VoucherPoster(ledger, config.period_lock()),
            engine=ClosingEngine(roles.income_summary, roles.retained_earnings),
            builder=VoucherBuilder(config.prefixes.by_type()),
            clock=clock,
        )

    def _period(self, period: Period | str | None) -> Period:
        if period is None:
            return Period.of(self._clock.today())
        return Period.parse(period)

    def preview(self, period: Period | str | None = None) -> ClosingPreview:
        period = self._period(period)
        with LogContext.bind(workflow="closing", period=period.key):
            result = self._engine.compute(balances=self._reader.account_balances())
            logger.info("closing_preview_built", extra={
                "total_revenue": result.total_revenue,
                "total_expense": result.total_expense,
                "profit": result.profit,
            })
        return ClosingPreview(period=period, post_date=period.last_day, result=result)

    def status(self, period: Period | str | None = None) -> ClosingStatus:
        period = self._period(period)
        # Other CLOSING-type vouchers (e.g. the VAT offset) share the type
        # but not the document number.
        doc_no = self._builder.doc_no(VoucherType.CLOSING, period)
        vouchers = self._ledger.find_vouchers(VoucherType.CLOSING, period.key)
        return ClosingStatus(
            period=period,
            closes=tuple(v for v in vouchers if v.doc_no == doc_no),
            reversals=tuple(v for v in vouchers if v.doc_no == doc_no + REVERSAL_SUFFIX),
        )

    def execute(self, period: Period | str | None = None) -> PostedVoucher:
        period = self._period(period)
        with LogContext.bind(workflow="closing", period=period.key):
            self._poster.ensure_open(period.last_day, "close")
            status = self.status(period)
            if status.is_closed:
                raise PeriodAlreadyClosedError(period.key, status.last_close.doc_no)

            preview = self.preview(period)
            voucher = self._builder.build(
                voucher_type=VoucherType.CLOSING,
                period=period,
                lines=preview.result.lines,
                description=f"Period-end closing entries {period.month:02d}/{period.year}",
                post_date=preview.post_date,
            )
            posted = self._poster.post(voucher)
            logger.info("period_closed", extra={
                "doc_no": posted.doc_no,
                "profit": preview.profit,
            })
        return posted

    def reverse(self, period: Period | str) -> PostedVoucher:
        """Post a mirror of the latest closing voucher for ``period``."""
        period = Period.parse(period)
        with LogContext.bind(workflow="closing_reversal", period=period.key):
            self._poster.ensure_open(period.last_day, "reverse closing")
            status = self.status(period)
            if not status.is_closed:
                raise NothingToPostError("closing reversal")

            original = status.last_close
            voucher = self._builder.build(
                voucher_type=VoucherType.CLOSING,
                period=period,
                lines=self._engine.reversal_lines(original.lines),
                description=f"Reverse {original.doc_no}",
                post_date=period.last_day,
                doc_no=f"{original.doc_no}{REVERSAL_SUFFIX}",
            )
            posted = self._poster.post(voucher)
            logger.info("period_close_reversed", extra={
                "doc_no": posted.doc_no,
                "reversed_doc_no": original.doc_no,
            })
        return posted
