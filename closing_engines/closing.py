"""
Module: closing_engines.closing
Responsibility:
    Compute the period-end closing entry: transfer every revenue and
    expense balance to the income summary account (911) and the resulting
    profit or loss to retained earnings (4212).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Balances arrive already
    classified (``AccountBalance.category``) by the balance reader.

Invariants enforced:
    - Revenue lines use ``|net_balance|``; expense lines use the signed,
      rounded balance, so an expense account in credit closes debit
      account / credit 911.  Every line amount is positive and every
      closed account ends at zero; zero balances are left out.
    - ``profit = sum(revenue) - sum(expense)``.
    - profit > 0 -> debit 911 / credit 4212; profit < 0 -> debit 4212 /
      credit 911; no final line when profit == 0.
    - 911 nets to zero across the voucher.

Failure modes:
    - NothingToPostError when there is no revenue or expense to close.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from closing_engines.tracer import traced_engine
from closing_kernel.domain.accounts import AccountClass
from closing_kernel.domain.dtos import AccountBalance, ClosingLine, VoucherLine
from closing_kernel.domain.money import round_amount
from closing_kernel.exceptions import NothingToPostError
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.closing")

# Revenue header accounts (e.g. "5", "51") carry no postings of their own.
MIN_REVENUE_CODE_LENGTH = 3


@dataclass(frozen=True)
class ClosingResult:
    revenue: tuple[ClosingLine, ...]
    expense: tuple[ClosingLine, ...]
    lines: tuple[VoucherLine, ...]

    @property
    def total_revenue(self) -> int:
        return sum(line.balance for line in self.revenue)

    @property
    def total_expense(self) -> int:
        return sum(line.balance for line in self.expense)

    @property
    def profit(self) -> int:
        return self.total_revenue - self.total_expense


class ClosingEngine:
    """P&L transfer calculator."""

    def __init__(self, income_summary: str = "911", retained_earnings: str = "4212"):
        self.income_summary = income_summary
        self.retained_earnings = retained_earnings

    @staticmethod
    def partition(
        balances: Sequence[AccountBalance],
    ) -> tuple[list[ClosingLine], list[ClosingLine]]:
        """Split a classified snapshot into revenue and expense closing lines."""
        revenue: list[ClosingLine] = []
        expense: list[ClosingLine] = []
        for balance in balances:
            if balance.category == AccountClass.REVENUE:
                if len(balance.code) < MIN_REVENUE_CODE_LENGTH:
                    continue
                amount = abs(round_amount(balance.net_balance))
                if amount > 0:
                    revenue.append(ClosingLine(balance.code, balance.name, amount, balance.category))
            elif balance.category == AccountClass.EXPENSE:
                amount = round_amount(balance.net_balance)
                if amount != 0:
                    expense.append(ClosingLine(balance.code, balance.name, amount, balance.category))
        return revenue, expense

    @traced_engine("closing", "1.0", fingerprint_fields=("balances",))
    def compute(self, *, balances: Sequence[AccountBalance]) -> ClosingResult:
        """
        Build the closing lines for a balance snapshot.

        Raises:
            NothingToPostError: no revenue or expense balances.
        """
        revenue, expense = self.partition(balances)
        lines: list[VoucherLine] = []
        for acc in revenue:
            lines.append(VoucherLine(
                description=f"Close revenue {acc.name}",
                debit_account=acc.code,
                credit_account=self.income_summary,
                amount=acc.balance,
                source_ref=acc.code,
            ))
        for acc in expense:
            # Refunds can leave an expense account in credit; it closes the other way.
            debit, credit = (
                (self.income_summary, acc.code) if acc.balance > 0
                else (acc.code, self.income_summary)
            )
            lines.append(VoucherLine(
                description=f"Close expense {acc.name}",
                debit_account=debit,
                credit_account=credit,
                amount=abs(acc.balance),
                source_ref=acc.code,
            ))

        if not lines:
            raise NothingToPostError("closing")

        result_without_final = ClosingResult(tuple(revenue), tuple(expense), ())
        profit = result_without_final.profit
        if profit > 0:
            lines.append(VoucherLine(
                description="Transfer profit for the period",
                debit_account=self.income_summary,
                credit_account=self.retained_earnings,
                amount=profit,
            ))
        elif profit < 0:
            lines.append(VoucherLine(
                description="Transfer loss for the period",
                debit_account=self.retained_earnings,
                credit_account=self.income_summary,
                amount=-profit,
            ))

        logger.info("closing_computed", extra={
            "revenue_count": len(revenue),
            "expense_count": len(expense),
            "total_revenue": result_without_final.total_revenue,
            "total_expense": result_without_final.total_expense,
            "profit": profit,
        })
        return ClosingResult(tuple(revenue), tuple(expense), tuple(lines))

    @staticmethod
    def reversal_lines(lines: Sequence[VoucherLine]) -> list[VoucherLine]:
        """Mirror a posted closing entry (debit and credit swapped)."""
        return [
            VoucherLine(
                description=f"Reverse: {line.description}",
                debit_account=line.credit_account,
                credit_account=line.debit_account,
                amount=line.amount,
                source_ref=line.source_ref,
            )
            for line in lines
        ]
