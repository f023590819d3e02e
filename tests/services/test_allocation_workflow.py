"""
Tests for the prepaid-expense allocation workflow.

Covers:
- open -> execute end to end against the SQL reference ledger
- Duplicate detection on a second run, including check failures
- Fallback to 242 account balances when no item register exists
- Lock and posting failures (no partial writes)
- History write failures reported, then re-driven idempotently
"""

from datetime import date

import pytest

from closing_kernel.domain.dtos import PrepaidItem, VoucherType
from closing_kernel.exceptions import (
    DuplicateAllocationError,
    EmptySelectionError,
    InvalidAccountError,
    LockedPeriodError,
    PostingFailure,
)
from closing_services.allocation_workflow import AllocationWorkflow


@pytest.fixture
def workflow(ledger, config, clock):
    ledger.add_prepaid_item("CCDC-01", "Laptop", 1_200_000, 12)
    ledger.add_prepaid_item("CCDC-02", "Desk", 600_000, 6, opening_allocated=500_000)
    return AllocationWorkflow.from_config(ledger, config, clock)


@pytest.fixture
def fake_workflow(fake_ledger, config, clock):
    fake_ledger.items = [
        PrepaidItem("A", "Laptop", 1_200_000, 12),
        PrepaidItem("B", "Desk", 600_000, 6),
    ]
    return AllocationWorkflow.from_config(fake_ledger, config, clock)


class TestOpen:

    def test_preview(self, workflow):
        preview = workflow.open("2024-05")
        laptop, desk = preview.items
        assert (laptop.monthly_amount, laptop.periods_remaining, laptop.proposed_amount) == (
            100_000, 12, 100_000
        )
        assert (desk.periods_allocated, desk.remaining_value, desk.proposed_amount) == (
            5, 100_000, 100_000
        )
        assert preview.selected_ids == {"CCDC-01", "CCDC-02"}
        assert preview.target_account == "642"
        assert preview.post_date == date(2024, 5, 31)
        assert preview.proposed_total == 200_000
        assert preview.warnings == ()

    def test_period_defaults_to_clock(self, workflow):
        assert workflow.open().period.key == "2024-05"

    def test_invalid_target(self, workflow):
        with pytest.raises(InvalidAccountError):
            workflow.open("2024-05", target_account="641")


class TestExecute:

    def test_posts_voucher_and_history(self, workflow, ledger, balance_of):
        outcome = workflow.execute(workflow.open("2024-05"))

        assert outcome.voucher.doc_no == "PB-2024.05"
        assert outcome.voucher.voucher_type == VoucherType.ALLOCATION
        assert outcome.voucher.total_amount == 200_000
        assert outcome.history_complete
        assert [r.item_id for r in outcome.recorded] == ["CCDC-01", "CCDC-02"]
        assert balance_of("642") == 200_000
        assert balance_of("242") == -200_000
        assert ledger.check_allocation_duplicate("2024-05", "CCDC-01")

    def test_second_open_flags_duplicates(self, workflow):
        workflow.execute(workflow.open("2024-05"))
        preview = workflow.open("2024-05")
        assert preview.selected_ids == frozenset()
        assert {w.item_id for w in preview.warnings} == {"CCDC-01", "CCDC-02"}
        with pytest.raises(EmptySelectionError):
            workflow.execute(preview)

    def test_next_period_continues_schedule(self, workflow):
        workflow.execute(workflow.open("2024-05"))
        preview = workflow.open("2024-06")
        laptop, desk = preview.items
        assert laptop.periods_allocated == 1
        assert laptop.periods_remaining == 11
        assert desk.remaining_value == 0
        assert preview.selected_ids == {"CCDC-01"}

    def test_edit_and_target(self, workflow, balance_of):
        preview = workflow.open("2024-05")
        preview = workflow.edit_amount(preview, "CCDC-01", 5_000_000)
        assert preview.item("CCDC-01").proposed_amount == 1_200_000
        preview = workflow.select(preview, ["CCDC-01"])
        preview = workflow.set_target(preview, "611")
        outcome = workflow.execute(preview)
        assert outcome.voucher.total_amount == 1_200_000
        assert balance_of("611") == 1_200_000

    def test_selecting_flagged_item_rejected(self, workflow):
        workflow.execute(workflow.open("2024-05"))
        preview = workflow.open("2024-05")
        with pytest.raises(DuplicateAllocationError):
            workflow.select(preview, ["CCDC-01"])

    def test_locked_period(self, ledger, locked_config, clock):
        ledger.add_prepaid_item("CCDC-01", "Laptop", 1_200_000, 12)
        workflow = AllocationWorkflow.from_config(ledger, locked_config, clock)
        preview = workflow.open("2024-05")
        with pytest.raises(LockedPeriodError):
            workflow.execute(preview)
        assert ledger.find_vouchers(VoucherType.ALLOCATION, "2024-05") == []
        assert not ledger.check_allocation_duplicate("2024-05", "CCDC-01")


class TestFallbackItems:

    def test_prepaid_balances_become_items(self, ledger, config, clock, post_opening, balance_of):
        post_opening(("242", "331", 1_200_000))
        workflow = AllocationWorkflow.from_config(ledger, config, clock)

        preview = workflow.open("2024-05")
        (item,) = preview.items
        assert item.item_id == "242"
        assert item.item_type == "account"
        assert item.life_months == 12
        assert item.proposed_amount == 100_000

        outcome = workflow.execute(preview)
        assert outcome.history_complete
        assert balance_of("242") == 1_100_000


class TestFailures:

    def test_duplicate_check_failure_is_not_fatal(self, fake_workflow, fake_ledger, captured_logs):
        fake_ledger.fail_duplicate_check_for.add("B")
        preview = fake_workflow.open("2024-05")
        assert preview.unchecked_ids == ("B",)
        assert preview.selected_ids == {"A", "B"}
        assert any(r["message"] == "duplicate_check_failed" for r in captured_logs())

    def test_one_duplicate_check_per_item(self, fake_workflow, fake_ledger):
        fake_workflow.open("2024-05")
        assert fake_ledger.calls.count("check_allocation_duplicate") == 2

    def test_lock_checked_before_any_write(self, fake_ledger, locked_config, clock):
        fake_ledger.items = [PrepaidItem("A", "Laptop", 1_200_000, 12)]
        workflow = AllocationWorkflow.from_config(fake_ledger, locked_config, clock)
        preview = workflow.open("2024-05")
        fake_ledger.calls.clear()
        with pytest.raises(LockedPeriodError):
            workflow.execute(preview)
        assert fake_ledger.calls == []

    def test_posting_failure_writes_no_history(self, fake_workflow, fake_ledger):
        preview = fake_workflow.open("2024-05")
        fake_ledger.fail_on["post_voucher"] = PostingFailure("post_voucher", "rejected")
        with pytest.raises(PostingFailure):
            fake_workflow.execute(preview)
        assert "record_allocation" not in fake_ledger.calls
        assert fake_ledger.history == {}

    def test_history_failure_is_reported(self, fake_workflow, fake_ledger):
        fake_ledger.fail_history_for.add("B")
        outcome = fake_workflow.execute(fake_workflow.open("2024-05"))
        assert [r.item_id for r in outcome.recorded] == ["A"]
        assert [r.item_id for r in outcome.failed] == ["B"]
        assert "history store unavailable" in outcome.errors["B"]
        assert not outcome.history_complete
        assert len(fake_ledger.vouchers) == 1


class TestRedrive:

    def test_redrive_completes_history(self, fake_workflow, fake_ledger):
        fake_ledger.fail_history_for.add("B")
        outcome = fake_workflow.execute(fake_workflow.open("2024-05"))
        fake_ledger.fail_history_for.clear()

        redriven = fake_workflow.redrive_history(outcome.voucher.voucher_id)
        assert redriven.history_complete
        assert set(fake_ledger.history) == {("2024-05", "A"), ("2024-05", "B")}

    def test_redrive_is_idempotent_on_sql_ledger(self, workflow, ledger):
        outcome = workflow.execute(workflow.open("2024-05"))
        first = workflow.redrive_history(outcome.voucher.voucher_id)
        second = workflow.redrive_history(outcome.voucher.voucher_id)
        assert first.history_complete and second.history_complete
        assert len(second.recorded) == 2

    def test_redrive_rejects_other_voucher_types(self, ledger, config, clock, post_opening):
        opening = post_opening(("242", "331", 1_000))
        workflow = AllocationWorkflow.from_config(ledger, config, clock)
        with pytest.raises(ValueError):
            workflow.redrive_history(opening.voucher_id)

    def test_redrive_keeps_period_when_posted_next_month(self, fake_ledger, config, clock):
        """May's allocation posted on 3 June is re-driven into May's history."""
        fake_ledger.items = [
            PrepaidItem("2421", "Tools", 240_000, 12, item_type="account", source_account="2421"),
        ]
        workflow = AllocationWorkflow.from_config(fake_ledger, config, clock)
        fake_ledger.fail_history_for.add("2421")
        outcome = workflow.execute(workflow.open("2024-05", post_date=date(2024, 6, 3)))
        assert outcome.voucher.post_date == date(2024, 6, 3)
        fake_ledger.fail_history_for.clear()

        workflow.redrive_history(outcome.voucher.voucher_id)

        assert list(fake_ledger.history) == [("2024-05", "2421")]
        record = fake_ledger.history[("2024-05", "2421")]
        assert (record.item_type, record.item_name) == ("account", "Tools")
        assert record.amount == 20_000

    def test_late_posted_voucher_stays_in_its_period(self, workflow, ledger):
        outcome = workflow.execute(workflow.open("2024-05", post_date=date(2024, 6, 3)))
        fetched = ledger.get_voucher(outcome.voucher.voucher_id)
        assert fetched.period == "2024-05"
        assert fetched.lines[0].source_type == "prepaid"
        assert fetched.lines[0].source_name == "Laptop"
        assert ledger.find_vouchers(VoucherType.ALLOCATION, "2024-05") == [fetched]
        assert ledger.find_vouchers(VoucherType.ALLOCATION, "2024-06") == []

        workflow.redrive_history(outcome.voucher.voucher_id)
        assert ledger.check_allocation_duplicate("2024-05", "CCDC-01")
        assert not ledger.check_allocation_duplicate("2024-06", "CCDC-01")
