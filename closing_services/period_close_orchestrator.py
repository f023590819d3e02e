"""
closing_services.period_close_orchestrator -- Month-end macro.

Responsibility:
    Run the automatable month-end steps for one period in a fixed order
    and report one ``StepResult`` per step:

        ALLOCATION     prepaid allocation, default selection and target
        FX_REVALUATION reported as manual (needs operator-entered amounts)
        VAT_TRANSFER   input/output VAT offset
        PL_TRANSFER    closing entry 911 -> 4212

    All business logic lives in the workflows and engines; the
    orchestrator adds sequencing and result collection.

Architecture position:
    Services -- orchestration over the other workflows.

Invariants enforced:
    - The period lock is checked once before the first step; a locked
      period aborts the whole run with no ledger call.
    - A failing step is recorded as ``error`` and the remaining steps
      still run.  Nothing is rolled back.

Failure modes:
    - LockedPeriodError before any step.
    - Step failures are reported in the results, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass

from closing_config import ClosingConfig
from closing_engines.revaluation import in_scope
from closing_engines.vat import VatOffsetEngine
from closing_engines.vouchers import VoucherBuilder, format_doc_no
from closing_kernel.domain.clock import Clock
from closing_kernel.domain.dtos import StepResult, VoucherType
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.money import format_amount
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import (
    ClosingKernelError,
    EmptySelectionError,
    NothingToPostError,
    PeriodAlreadyClosedError,
)
from closing_kernel.logging_config import LogContext, get_logger
from closing_services.allocation_workflow import AllocationWorkflow
from closing_services.balance_reader import BalanceSnapshotReader
from closing_services.closing_workflow import ClosingWorkflow
from closing_services.voucher_poster import VoucherPoster

logger = get_logger("services.period_close")

SUCCESS = "success"
SKIPPED = "skipped"
MANUAL = "manual"
ERROR = "error"


@dataclass(frozen=True)
class PeriodCloseResult:
    period: Period
    steps: tuple[StepResult, ...]

    @property
    def succeeded(self) -> bool:
        return all(step.status != ERROR for step in self.steps)

    @property
    def vouchers(self) -> list:
        return [step.voucher for step in self.steps if step.voucher is not None]

    def step(self, code: str) -> StepResult:
        for step in self.steps:
            if step.code == code:
                return step
        raise KeyError(code)


class PeriodCloseOrchestrator:
    """
    Sequences the month-end steps.

    Contract:
        Receives the workflows it drives via constructor injection;
        ``from_config`` wires the default set.
    """

    def __init__(
        self,
        reader: BalanceSnapshotReader,
        poster: VoucherPoster,
        allocation: AllocationWorkflow,
        closing: ClosingWorkflow,
        vat_engine: VatOffsetEngine | None = None,
        builder: VoucherBuilder | None = None,
        fx_accounts: tuple[str, ...] = ("1112", "1122", "131", "331"),
        vat_prefix: str = "KC-VAT",
    ):
        self._reader = reader
        self._poster = poster
        self._allocation = allocation
        self._closing = closing
        self._vat_engine = vat_engine or VatOffsetEngine()
        self._builder = builder or VoucherBuilder()
        self._fx_accounts = fx_accounts
        self._vat_prefix = vat_prefix

    @classmethod
    def from_config(
        cls,
        ledger: LedgerGateway,
        config: ClosingConfig,
        clock: Clock | None = None,
    ) -> PeriodCloseOrchestrator:
        roles = config.roles
        return cls(
            reader=BalanceSnapshotReader(ledger, config.chart(), roles.prepaid_source),
            poster=VoucherPoster(ledger, config.period_lock()),
            allocation=AllocationWorkflow.from_config(ledger, config, clock),
            closing=ClosingWorkflow.from_config(ledger, config, clock),
            vat_engine=VatOffsetEngine(roles.vat_input, roles.vat_output),
            builder=VoucherBuilder(config.prefixes.by_type()),
            fx_accounts=roles.fx_accounts,
            vat_prefix=config.prefixes.vat_offset,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _allocation_step(self, period: Period) -> StepResult:
        name = "Prepaid expense allocation"
        preview = self._allocation.open(period)
        if not preview.selected_ids:
            return StepResult("ALLOCATION", name, SKIPPED, "Nothing to allocate")
        try:
            outcome = self._allocation.execute(preview)
        except EmptySelectionError:
            return StepResult("ALLOCATION", name, SKIPPED, "Nothing to allocate")
        info = (
            f"Allocated {format_amount(outcome.voucher.total_amount)} "
            f"for {len(outcome.recorded) + len(outcome.failed)} items"
        )
        return StepResult(
            "ALLOCATION", name, SUCCESS, info,
            voucher=outcome.voucher,
            details={"history_failures": [r.item_id for r in outcome.failed]},
        )

    def _fx_step(self, period: Period) -> StepResult:
        name = "FX revaluation"
        balances = [
            b for b in self._reader.account_balances()
            if in_scope(b.code, self._fx_accounts) and b.net_balance != 0
        ]
        if not balances:
            return StepResult("FX_REVALUATION", name, SKIPPED, "No foreign-currency balances")
        total = sum(abs(b.net_balance) for b in balances)
        return StepResult(
            "FX_REVALUATION", name, MANUAL,
            f"Foreign-currency balances of {format_amount(total)} need manual revaluation",
            details={"account_codes": [b.code for b in balances]},
        )

    def _vat_step(self, period: Period) -> StepResult:
        name = "VAT offset"
        result = self._vat_engine.compute(balances=self._reader.account_balances())
        if not result.lines:
            info = (
                f"Input VAT {format_amount(result.vat_input)}, "
                f"output VAT {format_amount(result.vat_output)}"
                if result.has_balance else "No VAT balance"
            )
            return StepResult("VAT_TRANSFER", name, SKIPPED, info)

        voucher = self._builder.build(
            voucher_type=VoucherType.CLOSING,
            period=period,
            lines=result.lines,
            description=f"VAT offset {period.key}",
            doc_no=format_doc_no(self._vat_prefix, period),
        )
        posted = self._poster.post(voucher)
        return StepResult(
            "VAT_TRANSFER", name, SUCCESS,
            f"Offset {format_amount(result.offset)}; still payable "
            f"{format_amount(result.payable)}",
            voucher=posted,
            details={"payable": result.payable, "carried_forward": result.carried_forward},
        )

    def _pl_step(self, period: Period) -> StepResult:
        name = "Profit and loss transfer (911 -> 4212)"
        try:
            posted = self._closing.execute(period)
        except NothingToPostError:
            return StepResult("PL_TRANSFER", name, SKIPPED, "No revenue or expense to close")
        except PeriodAlreadyClosedError as e:
            return StepResult("PL_TRANSFER", name, SKIPPED, f"Already closed by {e.doc_no}")
        return StepResult(
            "PL_TRANSFER", name, SUCCESS,
            f"Closed with voucher {posted.doc_no}",
            voucher=posted,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, period: Period | str) -> PeriodCloseResult:
        period = Period.parse(period)
        steps = (
            ("ALLOCATION", self._allocation_step),
            ("FX_REVALUATION", self._fx_step),
            ("VAT_TRANSFER", self._vat_step),
            ("PL_TRANSFER", self._pl_step),
        )
        results: list[StepResult] = []
        with LogContext.bind(workflow="period_close", period=period.key):
            self._poster.ensure_open(period.last_day, "run month-end close")
            logger.info("period_close_started")

            for code, step in steps:
                try:
                    result = step(period)
                except ClosingKernelError as e:
                    logger.error("period_close_step_failed", extra={
                        "step": code,
                        "error_code": e.code,
                    }, exc_info=True)
                    result = StepResult(code, code, ERROR, str(e))
                results.append(result)
                logger.info("period_close_step_completed", extra={
                    "step": code,
                    "status": result.status,
                })

            outcome = PeriodCloseResult(period=period, steps=tuple(results))
            logger.info("period_close_completed", extra={
                "succeeded": outcome.succeeded,
                "voucher_count": len(outcome.vouchers),
            })
        return outcome
