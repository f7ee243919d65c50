from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fintrack.models import Base, ScopedMixin
from app.fintrack.utils import new_id, utcnow

ACCOUNT_TYPES = ("BANK", "CASH", "MOBILE_WALLET", "CREDIT_CARD")


class FinanceAccount(ScopedMixin, Base):
    """A wallet, bank account, card or cash drawer, scoped to a user or an organization."""

    __tablename__ = "finance_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="BANK")
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")

    # Running balance, maintained by the transactions module.
    current_balance: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False, default=Decimal("0"))

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
