"""
BaseService -- abstract base for kernel write services.

Invariants enforced:
    Services flush within the caller's transaction and never commit or roll
    back themselves; ``SqlLedger`` owns the transaction boundary of each
    ledger call.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from closing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Abstract base class for all kernel services."""

    def __init__(self, session: Session):
        self.session = session
