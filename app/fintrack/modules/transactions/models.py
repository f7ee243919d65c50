from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fintrack.models import Base
from app.fintrack.utils import new_id, utcnow

if TYPE_CHECKING:
    from app.fintrack.modules.accounts.models import FinanceAccount
    from app.fintrack.modules.categories.models import Category
    from app.fintrack.modules.payees.models import Payee

TRANSACTION_TYPES = ("INCOME", "EXPENSE", "TRANSFER")
TRANSACTION_STATUSES = ("pending", "completed", "failed")


class Transaction(Base):
    """
    The ledger. Ownership is inherited from the source account (account_id);
    there are no scope columns on the row itself.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("idx_transactions_account", "account_id"),
        Index("idx_transactions_to_account", "to_account_id"),
        Index("idx_transactions_date", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Money leaves this account for EXPENSE/TRANSFER, arrives here for INCOME.
    account_id: Mapped[str] = mapped_column(ForeignKey("finance_accounts.id"), nullable=False)
    # TRANSFER destination; may belong to another scope the requester can access.
    to_account_id: Mapped[str | None] = mapped_column(ForeignKey("finance_accounts.id"), nullable=True)

    category_id: Mapped[str | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    payee_id: Mapped[str | None] = mapped_column(ForeignKey("payees.id", ondelete="SET NULL"), nullable=True)
    subscription_id: Mapped[str | None] = mapped_column(
        ForeignKey("subscription_tracking.id", ondelete="SET NULL"), nullable=True
    )

    fee_amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False, default=Decimal("0"))
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(19, 6), nullable=False, default=Decimal("1"))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")

    tag_ids: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    account: Mapped["FinanceAccount"] = relationship("FinanceAccount", foreign_keys=[account_id], lazy="joined")
    to_account: Mapped["FinanceAccount | None"] = relationship("FinanceAccount", foreign_keys=[to_account_id], lazy="joined")
    category: Mapped["Category | None"] = relationship("Category", lazy="joined")
    payee: Mapped["Payee | None"] = relationship("Payee", lazy="joined")
