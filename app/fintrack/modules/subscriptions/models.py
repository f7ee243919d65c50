from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fintrack.models import Base, ScopedMixin
from app.fintrack.utils import new_id, utcnow

BILLING_CYCLES = ("DAILY", "WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY")
SUBSCRIPTION_STATUSES = ("ACTIVE", "CANCELLED", "PAUSED", "EXPIRED")


class SubscriptionTracking(ScopedMixin, Base):
    """
    A recurring payment being tracked (Netflix, hosting, ...).
    The next billing date is derived from start_date + billing_cycle, never stored.
    """

    __tablename__ = "subscription_tracking"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    billing_cycle: Mapped[str] = mapped_column(String(16), nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    account_id: Mapped[str | None] = mapped_column(ForeignKey("finance_accounts.id", ondelete="SET NULL"), nullable=True)
    category_id: Mapped[str | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notify_days_before: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
