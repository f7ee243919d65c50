from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.modules.reminders.models import REMINDER_STATUSES, Reminder
from app.fintrack.utils import field_error, iso, parse_datetime, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope


def validate_reminder_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    errors = []
    if not partial or "title" in payload:
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append(field_error("title", "Title is required"))
    if not partial or "dueDate" in payload:
        try:
            if parse_datetime(payload.get("dueDate")) is None:
                errors.append(field_error("dueDate", "Due date is required"))
        except ValueError:
            errors.append(field_error("dueDate", "Invalid date"))
    if "status" in payload and payload["status"] not in REMINDER_STATUSES:
        errors.append(field_error("status", f"Invalid status. Must be one of: {', '.join(REMINDER_STATUSES)}"))
    if payload.get("description") is not None and not isinstance(payload["description"], str):
        errors.append(field_error("description", "Description must be a string"))
    return errors


def serialize_reminder(r: Reminder) -> dict[str, Any]:
    return {
        "id": r.id,
        "title": r.title,
        "description": r.description,
        "dueDate": iso(r.due_date),
        "status": r.status,
        "userId": r.user_id,
        "organizationId": r.organization_id,
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }


def list_reminders(s: "Session", scope: "Scope") -> list[Reminder]:
    return s.query(Reminder).filter(scope.clause(Reminder)).order_by(Reminder.due_date.desc()).all()


def create_reminder(s: "Session", payload: dict, user: "User", scope: "Scope") -> Reminder:
    now = utcnow()
    reminder = Reminder(
        title=payload["title"].strip(),
        description=payload.get("description") or None,
        due_date=parse_datetime(payload["dueDate"]),
        status=payload.get("status") or "PENDING",
        created_at=now,
        updated_at=now,
        **scope.owner_fields(),
    )
    s.add(reminder)
    s.flush()
    record_event(
        s,
        actor=user,
        action="reminder.create",
        entity_type="Reminder",
        entity_id=reminder.id,
        organization_id=scope.organization_id,
        metadata={"title": reminder.title, "due_date": iso(reminder.due_date)},
    )
    return reminder


def update_reminder(s: "Session", reminder: Reminder, payload: dict, user: "User", scope: "Scope") -> Reminder:
    changes = {}
    if "title" in payload:
        new_title = payload["title"].strip()
        if new_title != reminder.title:
            changes["title"] = {"old": reminder.title, "new": new_title}
            reminder.title = new_title
    if "description" in payload:
        reminder.description = payload["description"] or None
    if "dueDate" in payload:
        new_due = parse_datetime(payload["dueDate"])
        if new_due != reminder.due_date:
            changes["dueDate"] = {"old": iso(reminder.due_date), "new": iso(new_due)}
            reminder.due_date = new_due
    if "status" in payload and payload["status"] != reminder.status:
        changes["status"] = {"old": reminder.status, "new": payload["status"]}
        reminder.status = payload["status"]
    reminder.updated_at = utcnow()
    record_event(
        s,
        actor=user,
        action="reminder.edit",
        entity_type="Reminder",
        entity_id=reminder.id,
        organization_id=scope.organization_id,
        metadata={"title": reminder.title, "changes": changes},
    )
    return reminder


def delete_reminder(s: "Session", reminder: Reminder, user: "User", scope: "Scope") -> None:
    record_event(
        s,
        actor=user,
        action="reminder.delete",
        entity_type="Reminder",
        entity_id=reminder.id,
        organization_id=scope.organization_id,
        metadata={"title": reminder.title},
    )
    s.delete(reminder)
