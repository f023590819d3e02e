"""
Module: closing_kernel.selectors.allocation_selector
Responsibility: Prepaid items with their accumulated allocation, and the
    allocation-history lookups used for duplicate detection.
Architecture position: Kernel > Selectors.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import AllocationRecord, PrepaidItem
from closing_kernel.models.allocation import AllocationHistory, PrepaidItemRecord
from closing_kernel.selectors.base import BaseSelector


class AllocationSelector(BaseSelector[AllocationHistory]):
    """Selector for prepaid items and allocation history."""

    def __init__(self, session: Session):
        super().__init__(session)

    def allocatable_items(self, period: str) -> list[PrepaidItem]:
        """
        Active prepaid items with history accumulated before ``period``.

        History rows of ``period`` itself are excluded from the accumulated
        amount so the preview of an already-allocated period still shows
        the amount that was proposed for it.
        """
        allocated = (
            select(
                AllocationHistory.item_id.label("item_id"),
                func.sum(AllocationHistory.amount).label("allocated"),
            )
            .where(AllocationHistory.period < period)
            .group_by(AllocationHistory.item_id)
            .subquery()
        )
        query = (
            select(PrepaidItemRecord, func.coalesce(allocated.c.allocated, 0))
            .outerjoin(allocated, allocated.c.item_id == PrepaidItemRecord.item_code)
            .where(PrepaidItemRecord.active.is_(True))
            .order_by(PrepaidItemRecord.item_code)
        )
        items: list[PrepaidItem] = []
        for record, history_total in self.session.execute(query).all():
            accumulated = record.opening_allocated + int(history_total)
            items.append(
                PrepaidItem(
                    item_id=record.item_code,
                    name=record.name,
                    cost=record.cost,
                    life_months=record.life_months,
                    accumulated=accumulated,
                    remaining_value=record.cost - accumulated,
                    item_type=record.item_type,
                    source_account=record.source_account,
                )
            )
        return items

    def find_record(self, period: str, item_id: str) -> AllocationRecord | None:
        row = self.session.scalars(
            select(AllocationHistory)
            .where(AllocationHistory.period == period)
            .where(AllocationHistory.item_id == item_id)
        ).first()
        if row is None:
            return None
        return AllocationRecord(
            period=row.period,
            item_id=row.item_id,
            amount=row.amount,
            target_account=row.target_account,
            voucher_id=row.voucher_id,
            item_type=row.item_type,
            item_name=row.item_name,
        )

    def is_allocated(self, period: str, item_id: str) -> bool:
        return self.find_record(period, item_id) is not None
