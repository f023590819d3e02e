"""
closing_services -- Imperative workflows over the closing engines.

Each workflow reads the ledger through ``LedgerGateway``, delegates every
calculation to ``closing_engines`` and posts through ``VoucherPoster``,
the only path to ``LedgerGateway.post_voucher``.  Workflows can be wired
by hand or with ``from_config(ledger, config, clock)``.
"""

from closing_services.allocation_workflow import (
    AllocationOutcome,
    AllocationPreview,
    AllocationWorkflow,
)
from closing_services.balance_reader import BalanceSnapshotReader
from closing_services.closing_workflow import (
    ClosingPreview,
    ClosingStatus,
    ClosingWorkflow,
)
from closing_services.debt_workflow import DebtWorkflow
from closing_services.period_close_orchestrator import (
    PeriodCloseOrchestrator,
    PeriodCloseResult,
)
from closing_services.revaluation_workflow import (
    RevaluationPreview,
    RevaluationWorkflow,
)
from closing_services.voucher_poster import VoucherPoster

__all__ = [
    "AllocationOutcome",
    "AllocationPreview",
    "AllocationWorkflow",
    "BalanceSnapshotReader",
    "ClosingPreview",
    "ClosingStatus",
    "ClosingWorkflow",
    "DebtWorkflow",
    "PeriodCloseOrchestrator",
    "PeriodCloseResult",
    "RevaluationPreview",
    "RevaluationWorkflow",
    "VoucherPoster",
]
