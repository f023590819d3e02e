"""
Tests for the prepaid-expense allocation engine.

Covers:
- Monthly amount, periods allocated / remaining, proposed amount
- Clamping of operator edits
- Duplicate flags and default selection
- Voucher lines and history records
"""

from uuid import uuid4

import pytest

from closing_engines.allocation import (
    PrepaidAllocationEngine,
    clamp,
    monthly_amount,
    periods_allocated,
)
from closing_kernel.domain.dtos import PrepaidItem
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import (
    DuplicateAllocationError,
    EmptySelectionError,
    InvalidAccountError,
)

PERIOD = Period.parse("2024-05")


def _item(item_id="CCDC-01", cost=1_200_000, life=12, accumulated=0, name=None, **kw):
    return PrepaidItem(
        item_id=item_id,
        name=name or f"Tool {item_id}",
        cost=cost,
        life_months=life,
        accumulated=accumulated,
        **kw,
    )


class TestFormulas:

    def test_monthly_amount(self):
        assert monthly_amount(1_200_000, 12) == 100_000

    def test_monthly_amount_rounds_half_up(self):
        # 1_000_000 / 3 = 333_333.33...
        assert monthly_amount(1_000_000, 3) == 333_333
        # 5 / 2 = 2.5
        assert monthly_amount(5, 2) == 3

    def test_monthly_amount_non_positive_life(self):
        assert monthly_amount(1_200_000, 0) == 0

    def test_periods_allocated(self):
        assert periods_allocated(300_000, 100_000) == 3
        assert periods_allocated(250_000, 100_000) == 3  # 2.5 rounds up

    def test_periods_allocated_zero_monthly(self):
        assert periods_allocated(300_000, 0) == 0

    def test_clamp(self):
        assert clamp(150, 100) == 100
        assert clamp(-5, 100) == 0
        assert clamp(50, -10) == 0


class TestBuildItems:

    def setup_method(self):
        self.engine = PrepaidAllocationEngine()

    def test_fresh_item(self):
        (row,) = self.engine.build_items(items=[_item()])
        assert row.monthly_amount == 100_000
        assert row.periods_allocated == 0
        assert row.periods_remaining == 12
        assert row.remaining_value == 1_200_000
        assert row.proposed_amount == 100_000
        assert not row.already_allocated

    def test_last_month_is_clamped_to_remaining(self):
        (row,) = self.engine.build_items(items=[_item(accumulated=1_150_000)])
        assert row.remaining_value == 50_000
        assert row.proposed_amount == 50_000

    def test_fully_allocated_item(self):
        (row,) = self.engine.build_items(items=[_item(accumulated=1_200_000)])
        assert row.periods_remaining == 0
        assert row.proposed_amount == 0
        assert not row.is_selectable

    def test_remaining_value_from_ledger_wins(self):
        (row,) = self.engine.build_items(items=[_item(remaining_value=30_000)])
        assert row.remaining_value == 30_000
        assert row.proposed_amount == 30_000

    def test_periods_remaining_never_negative(self):
        (row,) = self.engine.build_items(items=[_item(accumulated=1_500_000)])
        assert row.periods_remaining == 0
        assert row.proposed_amount == 0

    def test_already_allocated_flagged(self):
        rows = self.engine.build_items(
            items=[_item("A"), _item("B")], allocated_ids={"B"}
        )
        assert [r.already_allocated for r in rows] == [False, True]
        assert self.engine.default_selection(rows) == ["A"]

    def test_duplicate_warnings(self):
        rows = self.engine.build_items(
            items=[_item("A", name="Printer")], allocated_ids={"A"}
        )
        (warning,) = self.engine.duplicate_warnings(PERIOD.key, rows)
        assert warning.item_id == "A"
        assert warning.message == "Printer is already allocated for period 2024-05"


class TestEdits:

    def setup_method(self):
        self.engine = PrepaidAllocationEngine()
        (self.row,) = self.engine.build_items(items=[_item(accumulated=1_000_000)])

    def test_edit_within_bounds(self):
        assert self.engine.with_proposed_amount(self.row, 80_000).proposed_amount == 80_000

    def test_edit_above_remaining_is_clamped(self):
        assert self.engine.with_proposed_amount(self.row, 999_999).proposed_amount == 200_000

    def test_negative_edit_is_clamped_to_zero(self):
        assert self.engine.with_proposed_amount(self.row, -1).proposed_amount == 0


class TestBuildLines:

    def setup_method(self):
        self.engine = PrepaidAllocationEngine()
        self.rows = self.engine.build_items(
            items=[_item("A"), _item("B", cost=600_000, life=6), _item("C")],
            allocated_ids={"C"},
        )

    def test_one_line_per_selected_item(self):
        lines = self.engine.build_lines(
            items=self.rows, selected_ids={"A", "B"}, target_account="642", period=PERIOD
        )
        assert [(l.debit_account, l.credit_account, l.amount, l.source_ref) for l in lines] == [
            ("642", "242", 100_000, "A"),
            ("642", "242", 100_000, "B"),
        ]
        assert "2024-05" in lines[0].description

    def test_target_611(self):
        lines = self.engine.build_lines(
            items=self.rows, selected_ids={"A"}, target_account="611", period=PERIOD
        )
        assert lines[0].debit_account == "611"

    def test_target_outside_set_rejected(self):
        with pytest.raises(InvalidAccountError):
            self.engine.build_lines(
                items=self.rows, selected_ids={"A"}, target_account="641", period=PERIOD
            )

    def test_empty_selection(self):
        with pytest.raises(EmptySelectionError):
            self.engine.build_lines(
                items=self.rows, selected_ids=set(), target_account="642", period=PERIOD
            )

    def test_zero_amount_items_are_dropped(self):
        rows = [self.engine.with_proposed_amount(self.rows[0], 0), self.rows[1]]
        lines = self.engine.build_lines(
            items=rows, selected_ids={"A", "B"}, target_account="642", period=PERIOD
        )
        assert [l.source_ref for l in lines] == ["B"]

    def test_only_zero_amount_selected_is_empty(self):
        rows = [self.engine.with_proposed_amount(self.rows[0], 0)]
        with pytest.raises(EmptySelectionError):
            self.engine.build_lines(
                items=rows, selected_ids={"A"}, target_account="642", period=PERIOD
            )

    def test_flagged_item_cannot_be_posted(self):
        with pytest.raises(DuplicateAllocationError) as exc_info:
            self.engine.build_lines(
                items=self.rows, selected_ids={"A", "C"}, target_account="642", period=PERIOD
            )
        assert exc_info.value.item_id == "C"

    def test_history_records_match_lines(self):
        lines = self.engine.build_lines(
            items=self.rows, selected_ids={"A", "B"}, target_account="642", period=PERIOD
        )
        voucher_id = uuid4()
        records = self.engine.history_records(self.rows, lines, PERIOD, voucher_id)
        assert [(r.item_id, r.amount, r.target_account) for r in records] == [
            ("A", 100_000, "642"),
            ("B", 100_000, "642"),
        ]
        assert all(r.period == "2024-05" and r.voucher_id == voucher_id for r in records)
        assert records[0].item_name == "Tool A"
