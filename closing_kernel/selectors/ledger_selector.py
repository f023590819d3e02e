"""
Module: closing_kernel.selectors.ledger_selector
Responsibility: Account balances and voucher lookups derived from posted
    voucher lines.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored balances: every balance is computed at query time as
      sum(debit-side amounts) - sum(credit-side amounts) over POSTED vouchers.
    - Zero balances are omitted.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select, union_all
from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import (
    AccountBalance,
    PostedVoucher,
    VoucherLine,
    VoucherType,
)
from closing_kernel.domain.periods import Period
from closing_kernel.models.account import Account
from closing_kernel.models.voucher import VoucherEntry, VoucherItem, VoucherStatus
from closing_kernel.selectors.base import BaseSelector


def to_posted_voucher(entry: VoucherEntry) -> PostedVoucher:
    """Convert an ORM voucher to its DTO."""
    return PostedVoucher(
        voucher_id=entry.id,
        doc_no=entry.doc_no,
        voucher_type=VoucherType(entry.voucher_type),
        post_date=entry.post_date,
        period=entry.period,
        total_amount=entry.total_amount,
        description=entry.description,
        lines=tuple(
            VoucherLine(
                description=line.description,
                debit_account=line.debit_account,
                credit_account=line.credit_account,
                amount=line.amount,
                source_ref=line.source_ref,
                source_type=line.source_type,
                source_name=line.source_name,
            )
            for line in entry.lines
        ),
    )


class LedgerSelector(BaseSelector[VoucherItem]):
    """
    Selector for balance and voucher queries.

    Guarantees:
        - Balances are returned ordered by account code.
        - ``category`` on returned balances is left as OTHER; classification
          is applied by the caller's chart of accounts.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def account_balances(self, as_of: date | None = None) -> list[AccountBalance]:
        """
        Net balance of every account with posted activity.

        Args:
            as_of: Only include vouchers posted on or before this date.
        """
        posted = VoucherEntry.status == VoucherStatus.POSTED.value
        debit_side = (
            select(
                VoucherItem.debit_account.label("code"),
                VoucherItem.amount.label("amount"),
            )
            .join(VoucherEntry, VoucherEntry.id == VoucherItem.voucher_id)
            .where(posted)
        )
        credit_side = (
            select(
                VoucherItem.credit_account.label("code"),
                (-VoucherItem.amount).label("amount"),
            )
            .join(VoucherEntry, VoucherEntry.id == VoucherItem.voucher_id)
            .where(posted)
        )
        if as_of is not None:
            debit_side = debit_side.where(VoucherEntry.post_date <= as_of)
            credit_side = credit_side.where(VoucherEntry.post_date <= as_of)

        movements = union_all(debit_side, credit_side).subquery()
        net = func.sum(movements.c.amount)
        query = (
            select(
                movements.c.code,
                func.coalesce(Account.name, movements.c.code),
                net,
            )
            .outerjoin(Account, Account.code == movements.c.code)
            .group_by(movements.c.code, Account.name)
            .having(net != 0)
            .order_by(movements.c.code)
        )
        return [
            AccountBalance(code=code, name=name or code, net_balance=int(balance))
            for code, name, balance in self.session.execute(query).all()
        ]

    def vouchers_for_period(
        self, voucher_type: VoucherType, period: Period
    ) -> list[PostedVoucher]:
        """Posted vouchers of a type booked to the period."""
        query = (
            select(VoucherEntry)
            .where(VoucherEntry.voucher_type == voucher_type.value)
            .where(VoucherEntry.status == VoucherStatus.POSTED.value)
            .where(VoucherEntry.period == period.key)
            .order_by(VoucherEntry.created_at, VoucherEntry.doc_no)
        )
        return [to_posted_voucher(v) for v in self.session.scalars(query).all()]

    def voucher(self, voucher_id: UUID) -> PostedVoucher | None:
        entry = self.session.get(VoucherEntry, voucher_id)
        if entry is None:
            return None
        return to_posted_voucher(entry)
