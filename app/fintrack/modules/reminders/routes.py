from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.reminders.models import Reminder
from app.fintrack.modules.reminders.service import (
    create_reminder,
    delete_reminder,
    list_reminders,
    serialize_reminder,
    update_reminder,
    validate_reminder_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("reminders", __name__)


@bp.get("/reminders")
@require_session
def reminders_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_reminder(r) for r in list_reminders(s, scope)])


@bp.post("/reminders")
@require_session
def reminders_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_reminder_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    reminder = create_reminder(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_reminder(reminder)), 201


@bp.patch("/reminders/<reminder_id>")
@require_session
def reminders_update(reminder_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_reminder_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    reminder = get_scoped_or_404(s, Reminder, reminder_id, scope, "Reminder")
    update_reminder(s, reminder, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_reminder(reminder))


@bp.delete("/reminders/<reminder_id>")
@require_session
def reminders_delete(reminder_id: str):
    s = db_session()
    scope = current_scope(s)
    reminder = get_scoped_or_404(s, Reminder, reminder_id, scope, "Reminder")
    delete_reminder(s, reminder, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
