"""
Module: closing_engines.revaluation
Responsibility:
    Restate foreign-currency monetary accounts at a new exchange rate and
    produce the REVALUATION voucher lines: one adjustment per account with
    a nonzero difference, then netting lines that clear the unrealized FX
    account (413) into financial income (515) or financial expense (635).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``diff = round(foreign_amount * new_rate - book_value_local)``.
    - Routing follows ``AccountClass``: for an ASSET a positive diff is a
      gain (debit account / credit 413); for a LIABILITY a positive diff
      is a loss (debit 413 / credit account).  Negative diffs mirror.
    - 413 nets to zero: total gains are cleared 413 -> 515 and total
      losses 635 -> 413.
    - Every line is one debit/credit pair, so debits == credits.

Failure modes:
    - MissingForeignAmountError when a nonzero-book account has no
      positive foreign amount.
    - NothingToPostError when every |diff| is below one unit.
    - InvalidAccountError when an account is neither ASSET nor LIABILITY.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from closing_engines.tracer import traced_engine
from closing_kernel.domain.accounts import AccountClass
from closing_kernel.domain.dtos import AccountBalance, FxAccountBalance, VoucherLine
from closing_kernel.domain.money import to_decimal
from closing_kernel.exceptions import (
    InvalidAccountError,
    MissingForeignAmountError,
    NothingToPostError,
)
from closing_kernel.logging_config import get_logger

logger = get_logger("engines.revaluation")


@dataclass(frozen=True)
class FxAdjustment:
    """Per-account outcome of a revaluation."""

    code: str
    diff: int
    is_gain: bool

    @property
    def amount(self) -> int:
        return abs(self.diff)


@dataclass(frozen=True)
class RevaluationResult:
    """Adjustment and netting lines with the gain / loss totals."""

    adjustments: tuple[FxAdjustment, ...]
    lines: tuple[VoucherLine, ...]
    total_gain: int
    total_loss: int

    @property
    def net(self) -> int:
        return self.total_gain - self.total_loss


def in_scope(code: str, fx_accounts: Collection[str]) -> bool:
    return any(code.startswith(prefix) for prefix in fx_accounts)


class RevaluationEngine:
    """Foreign-currency revaluation calculator."""

    def __init__(
        self,
        clearing_account: str = "413",
        gain_account: str = "515",
        loss_account: str = "635",
    ):
        self.clearing_account = clearing_account
        self.gain_account = gain_account
        self.loss_account = loss_account

    @staticmethod
    def select_accounts(
        balances: Sequence[AccountBalance],
        fx_accounts: Collection[str],
        new_rate: Decimal | int | str,
    ) -> list[FxAccountBalance]:
        """
        Pick the in-scope monetary accounts with a nonzero book value.

        Foreign amounts start empty: the ledger tracks local currency only.
        """
        rate = to_decimal(new_rate)
        return [
            FxAccountBalance(
                code=balance.code,
                name=balance.name,
                book_value_local=abs(balance.net_balance),
                category=balance.category,
                new_rate=rate,
            )
            for balance in balances
            if in_scope(balance.code, fx_accounts) and balance.net_balance != 0
        ]

    @staticmethod
    def with_foreign_amount(
        account: FxAccountBalance, foreign_amount: Decimal | int | str | None
    ) -> FxAccountBalance:
        amount = None if foreign_amount is None else to_decimal(foreign_amount)
        return replace(account, foreign_amount=amount)

    @staticmethod
    def with_rate(account: FxAccountBalance, new_rate: Decimal | int | str) -> FxAccountBalance:
        return replace(account, new_rate=to_decimal(new_rate))

    @staticmethod
    def missing_foreign_amounts(accounts: Sequence[FxAccountBalance]) -> list[str]:
        return [
            acc.code
            for acc in accounts
            if acc.book_value_local != 0 and not acc.has_foreign_amount
        ]

    def _adjustment_line(self, acc: FxAccountBalance) -> tuple[FxAdjustment, VoucherLine]:
        diff = acc.diff
        if acc.category == AccountClass.ASSET:
            is_gain = diff > 0
            increase = diff > 0
        elif acc.category == AccountClass.LIABILITY:
            is_gain = diff < 0
            increase = diff > 0
        else:
            raise InvalidAccountError(
                acc.code, f"cannot revalue an account of class {acc.category.value}"
            )

        # An asset grows on the debit side, a liability on the credit side.
        grows_on_debit = acc.category == AccountClass.ASSET
        if increase == grows_on_debit:
            debit, credit = acc.code, self.clearing_account
        else:
            debit, credit = self.clearing_account, acc.code

        label = "FX gain" if is_gain else "FX loss"
        line = VoucherLine(
            description=f"Revalue {acc.name} - {label}",
            debit_account=debit,
            credit_account=credit,
            amount=abs(diff),
            source_ref=acc.code,
        )
        return FxAdjustment(code=acc.code, diff=diff, is_gain=is_gain), line

    @traced_engine("revaluation", "1.0", fingerprint_fields=("accounts", "currency"))
    def compute(
        self,
        *,
        accounts: Sequence[FxAccountBalance],
        currency: str = "USD",
    ) -> RevaluationResult:
        """
        Compute adjustment and netting lines.

        Raises:
            MissingForeignAmountError: foreign amount not entered.
            NothingToPostError: no account has a difference of at least 1.
        """
        missing = self.missing_foreign_amounts(accounts)
        if missing:
            logger.warning("revaluation_missing_foreign_amount", extra={
                "account_codes": missing,
            })
            raise MissingForeignAmountError(missing)

        adjustments: list[FxAdjustment] = []
        lines: list[VoucherLine] = []
        for acc in accounts:
            if abs(acc.diff) < 1:
                continue
            adjustment, line = self._adjustment_line(acc)
            adjustments.append(adjustment)
            lines.append(line)

        if not lines:
            raise NothingToPostError("revaluation")

        total_gain = sum(a.amount for a in adjustments if a.is_gain)
        total_loss = sum(a.amount for a in adjustments if not a.is_gain)

        if total_gain > 0:
            lines.append(VoucherLine(
                description=f"Transfer {currency} FX gain to {self.gain_account}",
                debit_account=self.clearing_account,
                credit_account=self.gain_account,
                amount=total_gain,
            ))
        if total_loss > 0:
            lines.append(VoucherLine(
                description=f"Transfer {currency} FX loss to {self.loss_account}",
                debit_account=self.loss_account,
                credit_account=self.clearing_account,
                amount=total_loss,
            ))

        logger.info("revaluation_computed", extra={
            "currency": currency,
            "account_count": len(adjustments),
            "total_gain": total_gain,
            "total_loss": total_loss,
        })
        return RevaluationResult(
            adjustments=tuple(adjustments),
            lines=tuple(lines),
            total_gain=total_gain,
            total_loss=total_loss,
        )
