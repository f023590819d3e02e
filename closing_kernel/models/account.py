"""
Module: closing_kernel.models.account
Responsibility: Chart-of-accounts rows (code and display name).  Account
    classification is NOT stored here; it comes from configuration via
    ``ChartOfAccounts`` so that routing never depends on stored flags.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from closing_kernel.db.base import Base


class Account(Base):
    """A postable account."""

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code} {self.name}>"
