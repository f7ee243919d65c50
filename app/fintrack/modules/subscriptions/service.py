from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.errors import ValidationFailed
from app.fintrack.modules.accounts.models import FinanceAccount
from app.fintrack.modules.categories.models import Category
from app.fintrack.modules.subscriptions.models import BILLING_CYCLES, SUBSCRIPTION_STATUSES, SubscriptionTracking
from app.fintrack.utils import field_error, iso, money, parse_datetime, parse_decimal, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope

_FIXED_PERIODS = {"DAILY": timedelta(days=1), "WEEKLY": timedelta(weeks=1)}
_MONTHS_PER_CYCLE = {"MONTHLY": 1, "QUARTERLY": 3, "YEARLY": 12}


def _add_months(value: datetime, months: int) -> datetime:
    """
    Calendar-field month addition. A day that does not exist in the target
    month overflows into the next one (Jan 31 + 1 month -> Mar 2 or 3).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return value.replace(year=year, month=month, day=1) + timedelta(days=value.day - 1)


def next_billing_date(start: datetime, cycle: str, now: datetime | None = None) -> datetime:
    """First billing date strictly after `now` (or `start` itself if it is still ahead)."""
    if now is None:
        now = utcnow()
    if start > now:
        return start

    period = _FIXED_PERIODS.get(cycle)
    if period is not None:
        cycles = (now - start) // period
        return start + (cycles + 1) * period

    step = _MONTHS_PER_CYCLE.get(cycle)
    if step is None:
        raise ValueError(f"Unknown billing cycle: {cycle}")
    elapsed = (now.year - start.year) * 12 + (now.month - start.month)
    # Billing happens at start's time of day, so a same-day `now` before that time is still the previous cycle.
    if (now.day, now.time()) < (start.day, start.time()):
        elapsed -= 1
    cycles = elapsed // step
    return _add_months(start, (cycles + 1) * step)


def validate_subscription_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    """Validate subscription create/update payload. Returns list of structured errors."""
    errors = []
    if not partial or "title" in payload:
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(field_error("title", "Title is required"))
    if not partial or "amount" in payload:
        try:
            if parse_decimal(payload.get("amount")) <= 0:
                errors.append(field_error("amount", "Amount must be positive"))
        except ValueError:
            errors.append(field_error("amount", "Amount must be a number"))
    if not partial or "billingCycle" in payload:
        if payload.get("billingCycle") not in BILLING_CYCLES:
            errors.append(
                field_error("billingCycle", f"Invalid billing cycle. Must be one of: {', '.join(BILLING_CYCLES)}")
            )
    for key in ("startDate", "endDate"):
        if key not in payload and (partial or key == "endDate"):
            continue
        try:
            value = parse_datetime(payload.get(key))
        except ValueError:
            errors.append(field_error(key, "Invalid date"))
            continue
        if value is None and key == "startDate":
            errors.append(field_error("startDate", "Start date is required"))
    if "currency" in payload and (not isinstance(payload["currency"], str) or not payload["currency"].strip()):
        errors.append(field_error("currency", "Currency must be a non-empty string"))
    if payload.get("notifyDaysBefore") is not None:
        days = payload["notifyDaysBefore"]
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            errors.append(field_error("notifyDaysBefore", "notifyDaysBefore must be a non-negative integer"))
    if "reminderEnabled" in payload and not isinstance(payload["reminderEnabled"], bool):
        errors.append(field_error("reminderEnabled", "reminderEnabled must be a boolean"))
    if "status" in payload and payload["status"] not in SUBSCRIPTION_STATUSES:
        errors.append(field_error("status", f"Invalid status. Must be one of: {', '.join(SUBSCRIPTION_STATUSES)}"))
    for key in ("accountId", "categoryId", "description"):
        if payload.get(key) is not None and not isinstance(payload[key], str):
            errors.append(field_error(key, f"{key} must be a string"))
    return errors


def serialize_subscription(sub: SubscriptionTracking, now: datetime | None = None) -> dict[str, Any]:
    return {
        "id": sub.id,
        "title": sub.title,
        "description": sub.description,
        "amount": money(sub.amount),
        "currency": sub.currency,
        "billingCycle": sub.billing_cycle,
        "startDate": iso(sub.start_date),
        "endDate": iso(sub.end_date),
        "nextBillingDate": iso(next_billing_date(sub.start_date, sub.billing_cycle, now)),
        "accountId": sub.account_id,
        "categoryId": sub.category_id,
        "reminderEnabled": sub.reminder_enabled,
        "notifyDaysBefore": sub.notify_days_before,
        "status": sub.status,
        "userId": sub.user_id,
        "organizationId": sub.organization_id,
        "createdAt": iso(sub.created_at),
        "updatedAt": iso(sub.updated_at),
    }


def list_subscriptions(s: "Session", scope: "Scope") -> list[SubscriptionTracking]:
    return (
        s.query(SubscriptionTracking)
        .filter(scope.clause(SubscriptionTracking))
        .order_by(SubscriptionTracking.created_at.desc())
        .all()
    )


def _check_ref(s: "Session", model: Any, obj_id: str | None, scope: "Scope", field: str, label: str) -> str | None:
    if not obj_id:
        return None
    obj = s.get(model, obj_id)
    if obj is None or not scope.owns(obj):
        raise ValidationFailed([field_error(field, f"{label} not found")])
    return obj.id


def create_subscription(s: "Session", payload: dict, user: "User", scope: "Scope") -> SubscriptionTracking:
    now = utcnow()
    sub = SubscriptionTracking(
        title=payload["title"].strip(),
        description=payload.get("description") or None,
        amount=parse_decimal(payload["amount"]),
        currency=(payload.get("currency") or "USD").strip().upper(),
        billing_cycle=payload["billingCycle"],
        start_date=parse_datetime(payload["startDate"]),
        end_date=parse_datetime(payload.get("endDate")),
        account_id=_check_ref(s, FinanceAccount, payload.get("accountId"), scope, "accountId", "Account"),
        category_id=_check_ref(s, Category, payload.get("categoryId"), scope, "categoryId", "Category"),
        reminder_enabled=payload.get("reminderEnabled", True),
        notify_days_before=payload.get("notifyDaysBefore"),
        status=payload.get("status") or "ACTIVE",
        created_at=now,
        updated_at=now,
        **scope.owner_fields(),
    )
    s.add(sub)
    s.flush()
    record_event(
        s,
        actor=user,
        action="subscription.create",
        entity_type="SubscriptionTracking",
        entity_id=sub.id,
        organization_id=scope.organization_id,
        metadata={"title": sub.title, "amount": money(sub.amount), "billing_cycle": sub.billing_cycle},
    )
    return sub


def update_subscription(
    s: "Session", sub: SubscriptionTracking, payload: dict, user: "User", scope: "Scope"
) -> SubscriptionTracking:
    changes = {}

    def _set(attr: str, key: str, value: Any) -> None:
        old = getattr(sub, attr)
        if value != old:
            changes[key] = {"old": old, "new": value}
            setattr(sub, attr, value)

    if "title" in payload:
        _set("title", "title", payload["title"].strip())
    if "description" in payload:
        _set("description", "description", payload["description"] or None)
    if "amount" in payload:
        _set("amount", "amount", parse_decimal(payload["amount"]))
    if "currency" in payload:
        _set("currency", "currency", payload["currency"].strip().upper())
    if "billingCycle" in payload:
        _set("billing_cycle", "billingCycle", payload["billingCycle"])
    if "startDate" in payload:
        _set("start_date", "startDate", parse_datetime(payload["startDate"]))
    if "endDate" in payload:
        _set("end_date", "endDate", parse_datetime(payload["endDate"]))
    if "accountId" in payload:
        _set("account_id", "accountId", _check_ref(s, FinanceAccount, payload["accountId"], scope, "accountId", "Account"))
    if "categoryId" in payload:
        _set("category_id", "categoryId", _check_ref(s, Category, payload["categoryId"], scope, "categoryId", "Category"))
    if "reminderEnabled" in payload:
        _set("reminder_enabled", "reminderEnabled", payload["reminderEnabled"])
    if "notifyDaysBefore" in payload:
        _set("notify_days_before", "notifyDaysBefore", payload["notifyDaysBefore"])
    if "status" in payload:
        _set("status", "status", payload["status"])
    sub.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="subscription.edit",
        entity_type="SubscriptionTracking",
        entity_id=sub.id,
        organization_id=scope.organization_id,
        metadata={"title": sub.title, "changes": changes},
    )
    return sub


def delete_subscription(s: "Session", sub: SubscriptionTracking, user: "User", scope: "Scope") -> None:
    from app.fintrack.modules.transactions.models import Transaction

    s.query(Transaction).filter(Transaction.subscription_id == sub.id).update(
        {Transaction.subscription_id: None}, synchronize_session=False
    )
    record_event(
        s,
        actor=user,
        action="subscription.delete",
        entity_type="SubscriptionTracking",
        entity_id=sub.id,
        organization_id=scope.organization_id,
        metadata={"title": sub.title},
    )
    s.delete(sub)
