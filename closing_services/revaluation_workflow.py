"""
closing_services.revaluation_workflow -- Foreign-currency revaluation workflow.

Responsibility:
    open (rate, currency, date) -> operator enters foreign amounts ->
    execute.  Posts one REVALUATION voucher built by
    ``RevaluationEngine``.

Architecture position:
    Services -- imperative shell over ``RevaluationEngine``.

Failure modes:
    - LockedPeriodError before the engine runs.
    - MissingForeignAmountError, NothingToPostError from the engine.
    - PostingFailure from the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from closing_config import ClosingConfig
from closing_engines.revaluation import RevaluationEngine
from closing_engines.vouchers import VoucherBuilder
from closing_kernel.domain.accounts import AccountClass
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import FxAccountBalance, PostedVoucher, VoucherType
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.money import to_decimal
from closing_kernel.domain.periods import Period
from closing_kernel.logging_config import LogContext, get_logger
from closing_services.balance_reader import BalanceSnapshotReader
from closing_services.voucher_poster import VoucherPoster

logger = get_logger("services.revaluation")


@dataclass(frozen=True)
class RevaluationPreview:
    post_date: date
    currency: str
    new_rate: Decimal
    accounts: tuple[FxAccountBalance, ...]

    @property
    def total_gain(self) -> int:
        return sum(self._gains())

    @property
    def total_loss(self) -> int:
        return sum(self._losses())

    def _economic_diffs(self) -> list[int]:
        # Positive means gain: a liability growing is a loss.
        return [
            acc.diff if acc.category == AccountClass.ASSET else -acc.diff
            for acc in self.accounts
        ]

    def _gains(self) -> list[int]:
        return [d for d in self._economic_diffs() if d > 0]

    def _losses(self) -> list[int]:
        return [-d for d in self._economic_diffs() if d < 0]

    def account(self, code: str) -> FxAccountBalance:
        for acc in self.accounts:
            if acc.code == code:
                return acc
        raise KeyError(code)


class RevaluationWorkflow:
    def __init__(
        self,
        reader: BalanceSnapshotReader,
        poster: VoucherPoster,
        fx_accounts: tuple[str, ...] = ("1112", "1122", "131", "331"),
        engine: RevaluationEngine | None = None,
        builder: VoucherBuilder | None = None,
        clock: Clock | None = None,
    ):
        self._reader = reader
        self._poster = poster
        self._fx_accounts = fx_accounts
        self._engine = engine or RevaluationEngine()
        self._builder = builder or VoucherBuilder()
        self._clock = clock or SystemClock()

    @classmethod
    def from_config(
        cls,
        ledger: LedgerGateway,
        config: ClosingConfig,
        clock: Clock | None = None,
    ) -> RevaluationWorkflow:
        roles = config.roles
        return cls(
            reader=BalanceSnapshotReader(ledger, config.chart(), roles.prepaid_source),
            poster=VoucherPoster(ledger, config.period_lock()),
            fx_accounts=roles.fx_accounts,
            engine=RevaluationEngine(roles.fx_clearing, roles.fx_gain, roles.fx_loss),
            builder=VoucherBuilder(config.prefixes.by_type()),
            clock=clock,
        )

    def open(
        self,
        new_rate: Decimal | int | str,
        currency: str = "USD",
        post_date: date | None = None,
    ) -> RevaluationPreview:
        post_date = post_date or self._clock.today()
        with LogContext.bind(workflow="revaluation", period=Period.of(post_date).key):
            accounts = self._engine.select_accounts(
                self._reader.account_balances(), self._fx_accounts, new_rate
            )
            logger.info("revaluation_preview_built", extra={
                "currency": currency,
                "new_rate": to_decimal(new_rate),
                "account_count": len(accounts),
            })
        return RevaluationPreview(
            post_date=post_date,
            currency=currency,
            new_rate=to_decimal(new_rate),
            accounts=tuple(accounts),
        )

    def set_foreign_amount(
        self,
        preview: RevaluationPreview,
        code: str,
        foreign_amount: Decimal | int | str | None,
    ) -> RevaluationPreview:
        edited = self._engine.with_foreign_amount(preview.account(code), foreign_amount)
        return replace(
            preview,
            accounts=tuple(edited if a.code == code else a for a in preview.accounts),
        )

    def set_rate(self, preview: RevaluationPreview, new_rate: Decimal | int | str) -> RevaluationPreview:
        return replace(
            preview,
            new_rate=to_decimal(new_rate),
            accounts=tuple(self._engine.with_rate(a, new_rate) for a in preview.accounts),
        )

    def execute(self, preview: RevaluationPreview) -> PostedVoucher:
        period = Period.of(preview.post_date)
        with LogContext.bind(workflow="revaluation", period=period.key):
            self._poster.ensure_open(preview.post_date, "revalue")
            result = self._engine.compute(accounts=preview.accounts, currency=preview.currency)
            voucher = self._builder.build(
                voucher_type=VoucherType.REVALUATION,
                period=period,
                lines=result.lines,
                description=(
                    f"Revalue {preview.currency} balances at {preview.new_rate} "
                    f"- {preview.post_date.isoformat()}"
                ),
                post_date=preview.post_date,
            )
            posted = self._poster.post(voucher)
            logger.info("revaluation_executed", extra={
                "doc_no": posted.doc_no,
                "total_gain": result.total_gain,
                "total_loss": result.total_loss,
            })
        return posted
