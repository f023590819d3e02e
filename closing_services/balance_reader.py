"""
closing_services.balance_reader -- Balance snapshot reader.

Responsibility:
    Fetch account balances and prepaid items from the ledger and shape
    them for the engines: every balance is classified once through the
    chart of accounts, and prepaid items fall back to the prepaid source
    account balances when the ledger keeps no item register.

Architecture position:
    Services -- imperative shell.  Read-only against the ledger.

Failure modes:
    - TransientFetchError from the ledger propagates.
"""

from __future__ import annotations

from dataclasses import replace

from closing_kernel.domain.accounts import ChartOfAccounts
from closing_kernel.domain.dtos import AccountBalance, PrepaidItem
from closing_kernel.domain.ledger import LedgerGateway
from closing_kernel.domain.periods import Period
from closing_kernel.logging_config import get_logger

logger = get_logger("services.balance_reader")


class BalanceSnapshotReader:
    """Loads and classifies ledger snapshots for one workflow run."""

    def __init__(
        self,
        ledger: LedgerGateway,
        chart: ChartOfAccounts,
        prepaid_source: str = "242",
        default_life_months: int = 12,
    ):
        self._ledger = ledger
        self._chart = chart
        self._prepaid_source = prepaid_source
        self._default_life_months = default_life_months

    def account_balances(self) -> list[AccountBalance]:
        balances = [
            replace(b, category=self._chart.classify(b.code))
            for b in self._ledger.get_account_balances()
        ]
        logger.info("balances_loaded", extra={"account_count": len(balances)})
        return balances

    def fallback_prepaid_items(self, balances: list[AccountBalance]) -> list[PrepaidItem]:
        """One item per debit balance on the prepaid source account(s)."""
        return [
            PrepaidItem(
                item_id=b.code,
                name=b.name,
                cost=b.net_balance,
                life_months=self._default_life_months,
                accumulated=0,
                remaining_value=b.net_balance,
                item_type="account",
                source_account=b.code,
            )
            for b in balances
            if b.code.startswith(self._prepaid_source) and b.net_balance > 0
        ]

    def prepaid_items(self, period: Period) -> list[PrepaidItem]:
        items = self._ledger.get_allocatable_items(period.key)
        if items:
            logger.info("prepaid_items_loaded", extra={
                "period": period.key,
                "item_count": len(items),
            })
            return items

        items = self.fallback_prepaid_items(self.account_balances())
        logger.info("prepaid_items_fallback", extra={
            "period": period.key,
            "item_count": len(items),
            "source_account": self._prepaid_source,
        })
        return items
