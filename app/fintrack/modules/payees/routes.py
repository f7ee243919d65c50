from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.payees.models import Payee
from app.fintrack.modules.payees.service import (
    create_payee,
    delete_payee,
    list_payees,
    serialize_payee,
    update_payee,
    validate_payee_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("payees", __name__)


@bp.get("/payees")
@require_session
def payees_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_payee(p) for p in list_payees(s, scope)])


@bp.post("/payees")
@require_session
def payees_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_payee_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    payee = create_payee(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_payee(payee)), 201


@bp.patch("/payees/<payee_id>")
@require_session
def payees_update(payee_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_payee_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    payee = get_scoped_or_404(s, Payee, payee_id, scope, "Payee")
    update_payee(s, payee, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_payee(payee))


@bp.delete("/payees/<payee_id>")
@require_session
def payees_delete(payee_id: str):
    s = db_session()
    scope = current_scope(s)
    payee = get_scoped_or_404(s, Payee, payee_id, scope, "Payee")
    delete_payee(s, payee, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
