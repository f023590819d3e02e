"""
Module: closing_engines.vat
Responsibility:
    Offset deductible input VAT (133) against output VAT payable (3331) at
    period end and report what is still payable or carried forward.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``input`` is the net debit of 133*, ``output`` the net credit of 3331*.
    - ``offset = min(input, output)`` when both are positive, else 0.
    - ``payable = output - offset`` and ``carried_forward = input - offset``;
      at most one of them is nonzero.
    - Lines post to the sub-accounts that carry the balances (e.g. 1331,
      33311), pairing input and output accounts in code order, so every
      relieved account moves by exactly what it contributed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from closing_engines.tracer import traced_engine
from closing_kernel.domain.dtos import AccountBalance, VoucherLine
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.vat")


@dataclass(frozen=True)
class VatOffsetResult:
    vat_input: int
    vat_output: int
    offset: int
    lines: tuple[VoucherLine, ...] = ()

    @property
    def payable(self) -> int:
        return max(0, self.vat_output - self.offset)

    @property
    def carried_forward(self) -> int:
        return max(0, self.vat_input - self.offset)

    @property
    def has_balance(self) -> bool:
        return self.vat_input > 0 or self.vat_output > 0


class VatOffsetEngine:
    """Input/output VAT netting."""

    def __init__(self, input_account: str = "133", output_account: str = "3331"):
        self.input_account = input_account
        self.output_account = output_account

    def _offset_lines(self, balances: Sequence[AccountBalance], offset: int) -> list[VoucherLine]:
        """Debit output sub-accounts / credit input sub-accounts until ``offset`` is used up."""
        inputs = sorted(
            [b.code, b.net_balance] for b in balances
            if b.code.startswith(self.input_account) and b.net_balance > 0
        )
        outputs = sorted(
            [b.code, -b.net_balance] for b in balances
            if b.code.startswith(self.output_account) and b.net_balance < 0
        )
        lines: list[VoucherLine] = []
        i = o = 0
        left = offset
        while left > 0:
            amount = min(left, inputs[i][1], outputs[o][1])
            lines.append(VoucherLine(
                description="Offset input VAT against output VAT",
                debit_account=outputs[o][0],
                credit_account=inputs[i][0],
                amount=amount,
            ))
            left -= amount
            inputs[i][1] -= amount
            outputs[o][1] -= amount
            if inputs[i][1] == 0:
                i += 1
            if outputs[o][1] == 0:
                o += 1
        return lines

    @traced_engine("vat_offset", "1.0", fingerprint_fields=("balances",))
    def compute(self, *, balances: Sequence[AccountBalance]) -> VatOffsetResult:
        vat_input = sum(
            b.net_balance for b in balances if b.code.startswith(self.input_account)
        )
        vat_output = sum(
            -b.net_balance for b in balances if b.code.startswith(self.output_account)
        )

        offset = min(vat_input, vat_output) if vat_input > 0 and vat_output > 0 else 0
        lines = self._offset_lines(balances, offset) if offset > 0 else []

        result = VatOffsetResult(
            vat_input=vat_input, vat_output=vat_output, offset=offset, lines=tuple(lines)
        )
        logger.info("vat_offset_computed", extra={
            "vat_input": vat_input,
            "vat_output": vat_output,
            "offset": offset,
            "payable": result.payable,
        })
        return result
