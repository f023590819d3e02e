"""
Accounts -- explicit chart-of-accounts classification.

Responsibility:
    Maps account codes to an ``AccountClass`` once per snapshot so that
    engines route postings on a classification value, not on ad-hoc
    code-prefix checks scattered across call sites.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The prefix table
    itself comes from configuration (closing_config).

Invariants enforced:
    - Longest configured prefix wins (``4212`` may override ``4``).
    - Unmatched codes classify as ``AccountClass.OTHER``.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum


class AccountClass(str, Enum):
    """Economic class of an account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    INCOME_SUMMARY = "income_summary"
    OTHER = "other"

    @property
    def is_temporary(self) -> bool:
        """Revenue and expense accounts are zeroed at period end."""
        return self in (AccountClass.REVENUE, AccountClass.EXPENSE)


class ChartOfAccounts:
    """
    Prefix-based account classifier.

    Contract:
        Built from a ``{prefix: AccountClass}`` table.  ``classify`` is a
        pure lookup.

    Guarantees:
        - Deterministic: the same code always yields the same class.
    """

    def __init__(self, prefixes: Mapping[str, AccountClass | str]):
        if not prefixes:
            raise ValueError("Chart of accounts needs at least one prefix")
        self._prefixes: tuple[tuple[str, AccountClass], ...] = tuple(
            sorted(
                ((str(p), AccountClass(c)) for p, c in prefixes.items()),
                key=lambda item: len(item[0]),
                reverse=True,
            )
        )

    def classify(self, code: str) -> AccountClass:
        code = code.strip()
        for prefix, account_class in self._prefixes:
            if code.startswith(prefix):
                return account_class
        return AccountClass.OTHER

    def is_class(self, code: str, account_class: AccountClass) -> bool:
        return self.classify(code) == account_class

    @property
    def prefixes(self) -> dict[str, AccountClass]:
        return dict(self._prefixes)
