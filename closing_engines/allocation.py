"""
Module: closing_engines.allocation
Responsibility:
    Compute the monthly prepaid-expense amortization preview: per-item
    monthly amount, periods already allocated / remaining and the proposed
    amount for the period.  Applies operator edits with clamping and turns
    the selected items into ALLOCATION voucher lines and history records.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Duplicate flags are
    looked up by ``closing_services.allocation_workflow`` and passed in.

Invariants enforced:
    - ``monthly_amount = round(cost / life_months)``.
    - ``periods_allocated = round(accumulated / monthly_amount)``, 0 when the
      monthly amount is 0.
    - ``periods_remaining = max(0, life_months - periods_allocated)``.
    - ``0 <= proposed_amount <= max(0, remaining_value)`` after every edit.
    - Items flagged ``already_allocated`` never enter the default selection
      and cannot be posted.

Failure modes:
    - EmptySelectionError when nothing postable is selected.
    - InvalidAccountError for a target account outside the configured set.
    - DuplicateAllocationError when a flagged item is selected anyway.

Usage:
    engine = PrepaidAllocationEngine(allowed_targets=("642", "611"))
    items = engine.build_items(items=prepaid, allocated_ids={"CCDC-01"})
    lines = engine.build_lines(
        items=items,
        selected_ids=engine.default_selection(items),
        target_account="642",
        period=Period.parse("2024-05"),
    )
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from closing_engines.tracer import traced_engine
from closing_kernel.domain.dtos import (
    AllocationItem,
    AllocationRecord,
    DuplicateWarning,
    PrepaidItem,
    VoucherLine,
)
from closing_kernel.domain.money import round_amount
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import (
    DuplicateAllocationError,
    EmptySelectionError,
    InvalidAccountError,
)
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


def monthly_amount(cost: int, life_months: int) -> int:
    """Straight-line monthly charge; a non-positive life charges nothing."""
    if life_months <= 0:
        return 0
    return round_amount(Decimal(cost) / Decimal(life_months))


def periods_allocated(accumulated: int, monthly: int) -> int:
    if monthly == 0:
        return 0
    return round_amount(Decimal(accumulated) / Decimal(monthly))


def clamp(amount: int, upper: int) -> int:
    """Clamp ``amount`` into ``[0, max(0, upper)]``."""
    return max(0, min(amount, max(0, upper)))


class PrepaidAllocationEngine:
    """
    Prepaid-expense (242) amortization calculator.

    Contract:
        Stateless apart from the configured target set and source account.
    """

    def __init__(
        self,
        allowed_targets: Sequence[str] = ("642", "611"),
        source_account: str = "242",
    ):
        self.allowed_targets = tuple(allowed_targets)
        self.source_account = source_account

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def compute_item(self, item: PrepaidItem, already_allocated: bool = False) -> AllocationItem:
        monthly = monthly_amount(item.cost, item.life_months)
        done = periods_allocated(item.accumulated, monthly)
        remaining = item.remaining
        return AllocationItem(
            item_id=item.item_id,
            name=item.name,
            source_account=item.source_account or self.source_account,
            total_cost=item.cost,
            life_months=item.life_months,
            monthly_amount=monthly,
            periods_allocated=done,
            periods_remaining=max(0, item.life_months - done),
            remaining_value=remaining,
            proposed_amount=clamp(monthly, remaining),
            already_allocated=already_allocated,
            item_type=item.item_type,
        )

    @traced_engine("prepaid_allocation", "1.0", fingerprint_fields=("items", "allocated_ids"))
    def build_items(
        self,
        *,
        items: Sequence[PrepaidItem],
        allocated_ids: Collection[str] = frozenset(),
    ) -> list[AllocationItem]:
        """Compute the preview rows, flagging items already allocated."""
        allocated = set(allocated_ids)
        result = [self.compute_item(item, item.item_id in allocated) for item in items]
        logger.info("allocation_items_computed", extra={
            "item_count": len(result),
            "already_allocated_count": sum(1 for r in result if r.already_allocated),
            "proposed_total": sum(r.proposed_amount for r in result),
        })
        return result

    @staticmethod
    def default_selection(items: Sequence[AllocationItem]) -> list[str]:
        return [item.item_id for item in items if item.is_selectable]

    @staticmethod
    def duplicate_warnings(period: str, items: Sequence[AllocationItem]) -> list[DuplicateWarning]:
        return [
            DuplicateWarning(period=period, item_id=item.item_id, item_name=item.name)
            for item in items
            if item.already_allocated
        ]

    @staticmethod
    def with_proposed_amount(item: AllocationItem, amount: int) -> AllocationItem:
        """Apply an operator edit, clamped to ``[0, remaining_value]``."""
        return replace(item, proposed_amount=clamp(round_amount(amount), item.remaining_value))

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def ensure_target(self, target_account: str) -> None:
        if target_account not in self.allowed_targets:
            raise InvalidAccountError(
                target_account,
                f"allocation target must be one of {', '.join(self.allowed_targets)}",
            )

    def selected_items(
        self,
        items: Sequence[AllocationItem],
        selected_ids: Collection[str],
        period: Period,
    ) -> list[AllocationItem]:
        """
        Resolve the selection to postable items, in preview order.

        Selected items with a zero proposed amount are dropped.
        """
        wanted = set(selected_ids)
        chosen: list[AllocationItem] = []
        for item in items:
            if item.item_id not in wanted:
                continue
            if item.already_allocated:
                raise DuplicateAllocationError(period.key, item.item_id)
            if item.proposed_amount > 0:
                chosen.append(item)
        if not chosen:
            raise EmptySelectionError("allocation")
        return chosen

    @traced_engine(
        "prepaid_allocation_lines", "1.0",
        fingerprint_fields=("items", "selected_ids", "target_account", "period"),
    )
    def build_lines(
        self,
        *,
        items: Sequence[AllocationItem],
        selected_ids: Collection[str],
        target_account: str,
        period: Period,
    ) -> list[VoucherLine]:
        """One line per selected item: debit target, credit source (242)."""
        self.ensure_target(target_account)
        return [
            VoucherLine(
                description=f"Allocate {item.name} - period {period.key}",
                debit_account=target_account,
                credit_account=item.source_account,
                amount=item.proposed_amount,
                source_ref=item.item_id,
                source_type=item.item_type,
                source_name=item.name,
            )
            for item in self.selected_items(items, selected_ids, period)
        ]

    @staticmethod
    def history_records(
        items: Sequence[AllocationItem],
        lines: Sequence[VoucherLine],
        period: Period,
        voucher_id: UUID | None,
    ) -> list[AllocationRecord]:
        """History rows for posted lines, matched on ``source_ref``."""
        by_id = {item.item_id: item for item in items}
        records = []
        for line in lines:
            if line.source_ref is None:
                continue
            item = by_id.get(line.source_ref)
            records.append(
                AllocationRecord(
                    period=period.key,
                    item_id=line.source_ref,
                    amount=line.amount,
                    target_account=line.debit_account,
                    voucher_id=voucher_id,
                    item_type=item.item_type if item else "prepaid",
                    item_name=item.name if item else "",
                )
            )
        return records
