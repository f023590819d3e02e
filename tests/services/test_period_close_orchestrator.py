"""
Tests for PeriodCloseOrchestrator.

Covers:
- Full month-end run against the SQL reference ledger
- Re-run after close (every step skipped or manual, nothing posted)
- Lock checked once before any step
- A failing step is reported and the remaining steps still run
"""

import pytest

from closing_kernel.domain.dtos import AccountBalance
from closing_kernel.exceptions import LockedPeriodError, PostingFailure
from closing_services.closing_workflow import ClosingWorkflow
from closing_services.period_close_orchestrator import (
    ERROR,
    MANUAL,
    SKIPPED,
    SUCCESS,
    PeriodCloseOrchestrator,
)


@pytest.fixture
def orchestrator(ledger, config, clock, post_opening):
    ledger.add_prepaid_item("CCDC-01", "Laptop", 1_200_000, 12)
    post_opening(
        ("131", "511", 500_000),
        ("642", "331", 300_000),
        ("133", "331", 30_000),
        ("131", "3331", 50_000),
        ("1122", "411", 25_000_000),
    )
    return PeriodCloseOrchestrator.from_config(ledger, config, clock)


class TestRun:

    def test_full_month_end(self, orchestrator, balance_of):
        result = orchestrator.run("2024-05")

        assert [s.code for s in result.steps] == [
            "ALLOCATION", "FX_REVALUATION", "VAT_TRANSFER", "PL_TRANSFER",
        ]
        assert result.succeeded

        allocation = result.step("ALLOCATION")
        assert allocation.status == SUCCESS
        assert allocation.voucher.doc_no == "PB-2024.05"
        assert allocation.info == "Allocated 100.000 for 1 items"

        fx = result.step("FX_REVALUATION")
        assert fx.status == MANUAL
        assert fx.details["account_codes"] == ["1122", "131", "331"]

        vat = result.step("VAT_TRANSFER")
        assert vat.status == SUCCESS
        assert vat.voucher.doc_no == "KC-VAT-2024.05"
        assert vat.details["payable"] == 20_000

        pl = result.step("PL_TRANSFER")
        assert pl.status == SUCCESS
        assert pl.voucher.doc_no == "KC-2024.05"

        assert len(result.vouchers) == 3
        assert balance_of("133") == 0
        assert balance_of("3331") == -20_000
        assert balance_of("911") == 0
        # 500_000 revenue - (300_000 + 100_000 allocated) expense
        assert balance_of("4212") == -100_000

    def test_vat_voucher_does_not_count_as_close(self, orchestrator, ledger, config, clock):
        orchestrator.run("2024-05")
        status = ClosingWorkflow.from_config(ledger, config, clock).status("2024-05")
        assert [v.doc_no for v in status.closes] == ["KC-2024.05"]
        assert status.reversals == ()

    def test_rerun_posts_nothing(self, orchestrator):
        orchestrator.run("2024-05")
        result = orchestrator.run("2024-05")

        assert result.succeeded
        assert result.vouchers == []
        assert result.step("ALLOCATION").status == SKIPPED
        assert result.step("VAT_TRANSFER").status == SKIPPED
        assert result.step("VAT_TRANSFER").info == "Input VAT 0, output VAT 20.000"
        assert result.step("PL_TRANSFER").status == SKIPPED
        assert result.step("PL_TRANSFER").info == "Already closed by KC-2024.05"

    def test_unknown_step(self, orchestrator):
        with pytest.raises(KeyError):
            orchestrator.run("2024-05").step("DEPRECIATION")


class TestFailures:

    def test_locked_period_aborts_before_any_step(self, fake_ledger, locked_config, clock):
        orchestrator = PeriodCloseOrchestrator.from_config(fake_ledger, locked_config, clock)
        with pytest.raises(LockedPeriodError):
            orchestrator.run("2024-05")
        assert fake_ledger.calls == []

    def test_failing_steps_are_reported(self, fake_ledger, config, clock, captured_logs):
        fake_ledger.balances = [
            AccountBalance("133", "Input VAT", 30_000),
            AccountBalance("3331", "Output VAT", -50_000),
            AccountBalance("511", "Sales", -500_000),
        ]
        fake_ledger.fail_on["post_voucher"] = PostingFailure("post_voucher", "ledger offline")
        orchestrator = PeriodCloseOrchestrator.from_config(fake_ledger, config, clock)

        result = orchestrator.run("2024-05")

        assert not result.succeeded
        assert [s.status for s in result.steps] == [SKIPPED, SKIPPED, ERROR, ERROR]
        assert "ledger offline" in result.step("PL_TRANSFER").info
        failures = [r for r in captured_logs() if r["message"] == "period_close_step_failed"]
        assert [r["step"] for r in failures] == ["VAT_TRANSFER", "PL_TRANSFER"]
        assert all(r["error_code"] == "POSTING_FAILURE" for r in failures)
