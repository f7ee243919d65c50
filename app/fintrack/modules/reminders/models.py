from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.fintrack.models import Base, ScopedMixin
from app.fintrack.utils import new_id, utcnow

REMINDER_STATUSES = ("PENDING", "COMPLETED", "SKIPPED")


class Reminder(ScopedMixin, Base):
    __tablename__ = "reminders"
    __table_args__ = (Index("idx_reminders_due_date", "due_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)  # e.g. "Pay electricity bill"
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
