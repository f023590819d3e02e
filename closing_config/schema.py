"""
Configuration schema (``closing_config.schema``).

Frozen dataclasses describing the chart of accounts, the account roles the
engines post to, document-number prefixes and runtime knobs.  Declarative
data only; no executable logic beyond derived views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from closing_kernel.domain.accounts import AccountClass, ChartOfAccounts
from closing_kernel.domain.dtos import VoucherType
from closing_kernel.domain.periods import PeriodLock


@dataclass(frozen=True)
class AccountRoles:
    """Account codes the engines post to."""

    prepaid_source: str = "242"
    allocation_targets: tuple[str, ...] = ("642", "611")
    fx_clearing: str = "413"
    fx_gain: str = "515"
    fx_loss: str = "635"
    fx_accounts: tuple[str, ...] = ("1112", "1122", "131", "331")
    income_summary: str = "911"
    retained_earnings: str = "4212"
    vat_input: str = "133"
    vat_output: str = "3331"


@dataclass(frozen=True)
class DocPrefixes:
    """Document-number prefixes per voucher type."""

    allocation: str = "PB"
    revaluation: str = "DG"
    closing: str = "KC"
    reallocation: str = "PBL"
    vat_offset: str = "KC-VAT"

    def by_type(self) -> dict[VoucherType, str]:
        return {
            VoucherType.ALLOCATION: self.allocation,
            VoucherType.REVALUATION: self.revaluation,
            VoucherType.CLOSING: self.closing,
            VoucherType.REALLOCATION: self.reallocation,
        }


@dataclass(frozen=True)
class ClosingConfig:
    """Complete runtime configuration."""

    account_classes: dict[str, AccountClass]
    roles: AccountRoles = field(default_factory=AccountRoles)
    prefixes: DocPrefixes = field(default_factory=DocPrefixes)
    default_life_months: int = 12
    duplicate_check_workers: int = 8
    locked_until: date | None = None
    checksum: str = ""

    def chart(self) -> ChartOfAccounts:
        return ChartOfAccounts(self.account_classes)

    def period_lock(self) -> PeriodLock:
        return PeriodLock(self.locked_until)
