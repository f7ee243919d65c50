from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

HEX_COLOR_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns are timezone-less)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def field_error(field: str, message: str) -> dict[str, Any]:
    return {"path": [field], "message": message}


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 date or datetime string into a naive UTC datetime."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Expected an ISO-8601 date string")
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_decimal(value: Any) -> Decimal:
    """Accept numbers or numeric strings, the way the client sends amounts."""
    if isinstance(value, bool) or value is None:
        raise ValueError("Expected a number")
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError("Expected a number") from e
    if not d.is_finite():
        raise ValueError("Expected a finite number")
    return d


def parse_month(value: str | None, today: date | None = None) -> date:
    """Parse YYYY-MM into the first day of that month; default is the current month."""
    if today is None:
        today = utcnow().date()
    raw = (value or "").strip()
    if not raw:
        return today.replace(day=1)
    return datetime.strptime(raw + "-01", "%Y-%m-%d").date()


def month_bounds(first: date) -> tuple[datetime, datetime]:
    """[start, end) datetimes for the month starting at `first`."""
    start = datetime(first.year, first.month, 1)
    if first.month == 12:
        end = datetime(first.year + 1, 1, 1)
    else:
        end = datetime(first.year, first.month + 1, 1)
    return start, end


def iso(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(value, "f")


def optional_str(payload: dict, key: str) -> str | None:
    return (payload.get(key) or "").strip() or None
