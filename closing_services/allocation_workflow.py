"""
closing_services.allocation_workflow -- Prepaid-expense allocation workflow.

Responsibility:
    open -> edit -> execute for the monthly 242 amortization.  ``open``
    loads the prepaid items, runs the per-item duplicate checks
    concurrently and returns an editable preview; ``execute`` posts one
    ALLOCATION voucher and writes one history record per line;
    ``redrive_history`` replays the history writes from a posted voucher.

Architecture position:
    Services -- imperative shell over ``PrepaidAllocationEngine`` and the
    ledger gateway.

Invariants enforced:
    - The lock check runs before the voucher is built or posted.
    - A failing duplicate check for one item is logged and treated as
      "not yet allocated"; it never fails the preview.
    - History writes run in line order and independently: a failure on
      one record does not undo earlier ones and is reported in the
      outcome instead of raising.

Failure modes:
    - LockedPeriodError, EmptySelectionError, InvalidAccountError,
      DuplicateAllocationError before any write.
    - PostingFailure when the voucher is rejected (preview unchanged).
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date
from uuid import UUID

from closing_config import ClosingConfig
from closing_engines.allocation import PrepaidAllocationEngine
from closing_engines.vouchers import VoucherBuilder
from closing_kernel.domain.clock import Clock, SystemClock
from closing_kernel.domain.dtos import (
    AllocationItem,
    AllocationRecord,
    DuplicateWarning,
    PostedVoucher,
    VoucherType,
)
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import (
    DuplicateAllocationError,
    LedgerError,
    TransientFetchError,
)
from closing_kernel.logging_config import LogContext, get_logger
from closing_services.balance_reader import BalanceSnapshotReader
from closing_services.voucher_poster import VoucherPoster

logger = get_logger("services.allocation")


@dataclass(frozen=True)
class AllocationPreview:
    """Editable state between ``open`` and ``execute``."""

    period: Period
    post_date: date
    target_account: str
    items: tuple[AllocationItem, ...]
    selected_ids: frozenset[str]
    warnings: tuple[DuplicateWarning, ...] = ()
    unchecked_ids: tuple[str, ...] = ()

    @property
    def selected_items(self) -> list[AllocationItem]:
        return [item for item in self.items if item.item_id in self.selected_ids]

    @property
    def proposed_total(self) -> int:
        return sum(item.proposed_amount for item in self.selected_items)

    def item(self, item_id: str) -> AllocationItem:
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise KeyError(item_id)


@dataclass(frozen=True)
class AllocationOutcome:
    voucher: PostedVoucher
    recorded: tuple[AllocationRecord, ...] = ()
    failed: tuple[AllocationRecord, ...] = ()
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def history_complete(self) -> bool:
        return not self.failed


class AllocationWorkflow:
    """
    Monthly prepaid-expense allocation.

    Contract:
        Nothing is written before ``execute``.  ``open`` and the edit
        methods only read the ledger.
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        reader: BalanceSnapshotReader,
        poster: VoucherPoster,
        engine: PrepaidAllocationEngine | None = None,
        builder: VoucherBuilder | None = None,
        clock: Clock | None = None,
        max_workers: int = 8,
    ):
        self._ledger = ledger
        self._reader = reader
        self._poster = poster
        self._engine = engine or PrepaidAllocationEngine()
        self._builder = builder or VoucherBuilder()
        self._clock = clock or SystemClock()
        self._max_workers = max_workers

    @classmethod
    def from_config(
        cls,
        ledger: LedgerGateway,
        config: ClosingConfig,
        clock: Clock | None = None,
    ) -> AllocationWorkflow:
        roles = config.roles
        return cls(
            ledger=ledger,
            reader=BalanceSnapshotReader(
                ledger, config.chart(), roles.prepaid_source, config.default_life_months
            ),
            poster=VoucherPoster(ledger, config.period_lock()),
            engine=PrepaidAllocationEngine(roles.allocation_targets, roles.prepaid_source),
            builder=VoucherBuilder(config.prefixes.by_type()),
            clock=clock,
            max_workers=config.duplicate_check_workers,
        )

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def _check_one(self, period_key: str, item_id: str) -> bool | None:
        try:
            return self._ledger.check_allocation_duplicate(period_key, item_id)
        except TransientFetchError as e:
            logger.warning("duplicate_check_failed", extra={
                "period": period_key,
                "item_id": item_id,
                "reason": e.reason,
            })
            return None

    def check_duplicates(
        self, period: Period, item_ids: Sequence[str]
    ) -> tuple[set[str], list[str]]:
        """
        Query allocation history for every item concurrently.

        Returns:
            ``(allocated_ids, unchecked_ids)``; unchecked items count as not
            yet allocated.
        """
        if not item_ids:
            return set(), []
        workers = max(1, min(len(item_ids), self._max_workers))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda i: self._check_one(period.key, i), item_ids))

        allocated = {i for i, hit in zip(item_ids, results) if hit}
        unchecked = [i for i, hit in zip(item_ids, results) if hit is None]
        return allocated, unchecked

    def open(
        self,
        period: Period | str | None = None,
        target_account: str | None = None,
        post_date: date | None = None,
    ) -> AllocationPreview:
        """Build the preview for ``period`` (defaults to the clock's month)."""
        period = Period.parse(period) if period is not None else Period.of(self._clock.today())
        target = target_account or self._engine.allowed_targets[0]
        self._engine.ensure_target(target)

        with LogContext.bind(workflow="allocation", period=period.key):
            prepaid = self._reader.prepaid_items(period)
            allocated, unchecked = self.check_duplicates(
                period, [p.item_id for p in prepaid]
            )
            items = self._engine.build_items(items=prepaid, allocated_ids=allocated)
            preview = AllocationPreview(
                period=period,
                post_date=post_date or period.last_day,
                target_account=target,
                items=tuple(items),
                selected_ids=frozenset(self._engine.default_selection(items)),
                warnings=tuple(self._engine.duplicate_warnings(period.key, items)),
                unchecked_ids=tuple(unchecked),
            )
            logger.info("allocation_preview_built", extra={
                "item_count": len(items),
                "selected_count": len(preview.selected_ids),
                "duplicate_count": len(preview.warnings),
                "unchecked_count": len(unchecked),
                "proposed_total": preview.proposed_total,
            })
        return preview

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def edit_amount(self, preview: AllocationPreview, item_id: str, amount: int) -> AllocationPreview:
        edited = self._engine.with_proposed_amount(preview.item(item_id), amount)
        items = tuple(edited if i.item_id == item_id else i for i in preview.items)
        return replace(preview, items=items)

    def select(self, preview: AllocationPreview, item_ids: Collection[str]) -> AllocationPreview:
        """Replace the selection; flagged items cannot be selected."""
        for item_id in item_ids:
            item = preview.item(item_id)
            if item.already_allocated:
                raise DuplicateAllocationError(preview.period.key, item_id)
        return replace(preview, selected_ids=frozenset(item_ids))

    def set_target(self, preview: AllocationPreview, target_account: str) -> AllocationPreview:
        self._engine.ensure_target(target_account)
        return replace(preview, target_account=target_account)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _write_history(
        self, records: Sequence[AllocationRecord]
    ) -> tuple[list[AllocationRecord], list[AllocationRecord], dict[str, str]]:
        recorded: list[AllocationRecord] = []
        failed: list[AllocationRecord] = []
        errors: dict[str, str] = {}
        for record in records:
            try:
                self._ledger.record_allocation(record)
            except (LedgerError, DuplicateAllocationError) as e:
                logger.error("allocation_history_write_failed", extra={
                    "item_id": record.item_id,
                    "period": record.period,
                    "error_code": e.code,
                    "error": str(e),
                })
                failed.append(record)
                errors[record.item_id] = str(e)
            else:
                recorded.append(record)
        return recorded, failed, errors

    def execute(self, preview: AllocationPreview) -> AllocationOutcome:
        period = preview.period
        with LogContext.bind(workflow="allocation", period=period.key):
            self._poster.ensure_open(preview.post_date, "allocate")
            lines = self._engine.build_lines(
                items=preview.items,
                selected_ids=preview.selected_ids,
                target_account=preview.target_account,
                period=period,
            )
            voucher = self._builder.build(
                voucher_type=VoucherType.ALLOCATION,
                period=period,
                lines=lines,
                description=f"Prepaid expense allocation - period {period.month:02d}/{period.year}",
                post_date=preview.post_date,
            )
            posted = self._poster.post(voucher)

            with LogContext.bind(voucher_id=str(posted.voucher_id)):
                records = self._engine.history_records(
                    preview.items, voucher.lines, period, posted.voucher_id
                )
                recorded, failed, errors = self._write_history(records)
                outcome = AllocationOutcome(posted, tuple(recorded), tuple(failed), errors)
                logger.info("allocation_executed", extra={
                    "doc_no": posted.doc_no,
                    "total_amount": posted.total_amount,
                    "recorded_count": len(outcome.recorded),
                    "failed_count": len(outcome.failed),
                })
        return outcome

    def redrive_history(self, voucher_id: UUID) -> AllocationOutcome:
        """
        Rewrite the history records of a posted ALLOCATION voucher.

        Records that already exist for the same voucher are accepted by the
        ledger as no-ops, so this is safe to repeat.
        """
        posted = self._ledger.get_voucher(voucher_id)
        if posted.voucher_type != VoucherType.ALLOCATION:
            raise ValueError(
                f"Voucher {posted.doc_no} is {posted.voucher_type.value}, not ALLOCATION"
            )
        # A locked month can be allocated with a later post_date
        period = Period.parse(posted.period) if posted.period else Period.of(posted.post_date)
        records = [
            AllocationRecord(
                period=period.key,
                item_id=line.source_ref,
                amount=line.amount,
                target_account=line.debit_account,
                voucher_id=posted.voucher_id,
                item_type=line.source_type or "prepaid",
                item_name=line.source_name or "",
            )
            for line in posted.lines
            if line.source_ref
        ]
        with LogContext.bind(
            workflow="allocation_redrive", period=period.key, voucher_id=str(voucher_id)
        ):
            recorded, failed, errors = self._write_history(records)
            outcome = AllocationOutcome(posted, tuple(recorded), tuple(failed), errors)
            logger.info("allocation_history_redriven", extra={
                "doc_no": posted.doc_no,
                "recorded_count": len(outcome.recorded),
                "failed_count": len(outcome.failed),
            })
        return outcome
