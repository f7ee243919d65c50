from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.transactions.service import (
    create_transaction,
    delete_transaction,
    get_transaction_for_scope,
    list_transactions,
    serialize_transaction,
    update_transaction,
    validate_transaction_payload,
)
from app.fintrack.scope import current_scope, current_user, require_session

bp = Blueprint("transactions", __name__)


@bp.get("/transactions")
@require_session
def transactions_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_transaction(t) for t in list_transactions(s, scope)])


@bp.post("/transactions")
@require_session
def transactions_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_transaction_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    tx = create_transaction(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_transaction(tx)), 201


@bp.patch("/transactions/<tx_id>")
@require_session
def transactions_update(tx_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_transaction_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    tx = get_transaction_for_scope(s, tx_id, scope)
    update_transaction(s, tx, payload, current_user(), scope)
    s.commit()
    s.refresh(tx)
    return jsonify(serialize_transaction(tx))


@bp.delete("/transactions/<tx_id>")
@require_session
def transactions_delete(tx_id: str):
    s = db_session()
    scope = current_scope(s)
    tx = get_transaction_for_scope(s, tx_id, scope)
    delete_transaction(s, tx, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
