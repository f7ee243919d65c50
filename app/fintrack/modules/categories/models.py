from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.fintrack.models import Base, ScopedMixin
from app.fintrack.utils import new_id, utcnow

CATEGORY_TYPES = ("EXPENSE", "INCOME")
DEFAULT_CATEGORY_COLOR = "#9CA3AF"


class Category(ScopedMixin, Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="EXPENSE")
    color: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_CATEGORY_COLOR)

    # Hierarchy, e.g. Utilities -> Electric
    parent_id: Mapped[str | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    parent: Mapped["Category | None"] = relationship("Category", remote_side="Category.id", back_populates="children")
    children: Mapped[list["Category"]] = relationship("Category", back_populates="parent")
