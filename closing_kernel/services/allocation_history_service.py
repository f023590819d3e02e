"""
AllocationHistoryService -- idempotent allocation-history writes.

Responsibility:
    Records one history row per posted allocation line.  Writing the same
    (period, item_id, voucher_id) again is a no-op so history can be
    re-driven from a posted voucher after a partial failure.

Invariants enforced:
    - One row per (period, item_id).
    - A second row for the same (period, item_id) from a different voucher
      is rejected.

Failure modes:
    - DuplicateAllocationError when another voucher already allocated the
      item for the period.
"""

from sqlalchemy.orm import Session

from closing_kernel.domain.dtos import AllocationRecord
from closing_kernel.exceptions import DuplicateAllocationError
from closing_kernel.logging_config import get_logger
from closing_kernel.models.allocation import AllocationHistory
from closing_kernel.selectors.allocation_selector import AllocationSelector
from closing_kernel.services.base import BaseService

logger = get_logger("services.allocation_history")


class AllocationHistoryService(BaseService[AllocationHistory]):

    def __init__(self, session: Session, actor: str = "system"):
        super().__init__(session)
        self._actor = actor
        self._selector = AllocationSelector(session)

    def record(self, record: AllocationRecord) -> bool:
        """
        Write the record.

        Returns:
            True if a row was inserted, False if the identical record was
            already present.
        """
        existing = self._selector.find_record(record.period, record.item_id)
        if existing is not None:
            if existing.voucher_id == record.voucher_id:
                logger.info("allocation_history_already_recorded", extra={
                    "period": record.period,
                    "item_id": record.item_id,
                    "voucher_id": str(record.voucher_id),
                })
                return False
            raise DuplicateAllocationError(record.period, record.item_id)

        self.session.add(
            AllocationHistory(
                period=record.period,
                item_id=record.item_id,
                item_type=record.item_type,
                item_name=record.item_name,
                amount=record.amount,
                target_account=record.target_account,
                voucher_id=record.voucher_id,
                created_by=self._actor,
            )
        )
        self.session.flush()
        return True
