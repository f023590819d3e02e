"""
Module: closing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for closing_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import closing_kernel (domain, exceptions, logging) and
    sibling engine modules.  MUST NOT import closing_services.

Invariants enforced:
    - Purity: engines never read the clock.  Periods and dates are passed
      in explicitly by the workflows.
    - Integer amounts: every posted amount is rounded through
      ``closing_kernel.domain.money.round_amount``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is wrapped by ``@traced_engine`` (see
    ``closing_engines.tracer``) and emits a CLOSING_ENGINE_TRACE record.
"""

from closing_engines.allocation import (
    PrepaidAllocationEngine,
    clamp,
    monthly_amount,
    periods_allocated,
)
from closing_engines.closing import ClosingEngine, ClosingResult
from closing_engines.debt import (
    UNSAVED_PAYMENT_ID,
    DebtAllocationEngine,
    DebtCandidate,
    DebtPlan,
    fifo_take,
)
from closing_engines.revaluation import (
    FxAdjustment,
    RevaluationEngine,
    RevaluationResult,
)
from closing_engines.tracer import compute_input_fingerprint, traced_engine
from closing_engines.vat import VatOffsetEngine, VatOffsetResult
from closing_engines.vouchers import DEFAULT_PREFIXES, VoucherBuilder, format_doc_no

__all__ = [
    "ClosingEngine",
    "ClosingResult",
    "DEFAULT_PREFIXES",
    "DebtAllocationEngine",
    "DebtCandidate",
    "DebtPlan",
    "FxAdjustment",
    "PrepaidAllocationEngine",
    "RevaluationEngine",
    "RevaluationResult",
    "UNSAVED_PAYMENT_ID",
    "VatOffsetEngine",
    "VatOffsetResult",
    "VoucherBuilder",
    "clamp",
    "compute_input_fingerprint",
    "fifo_take",
    "format_doc_no",
    "monthly_amount",
    "periods_allocated",
    "traced_engine",
]
