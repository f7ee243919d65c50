from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.accounts.models import FinanceAccount
from app.fintrack.modules.accounts.service import (
    create_account,
    delete_account,
    list_accounts,
    serialize_account,
    update_account,
    validate_account_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("accounts", __name__)


@bp.get("/accounts")
@require_session
def accounts_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_account(a) for a in list_accounts(s, scope)])


@bp.post("/accounts")
@require_session
def accounts_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_account_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    account = create_account(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_account(account)), 201


@bp.patch("/accounts/<account_id>")
@require_session
def accounts_update(account_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_account_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    account = get_scoped_or_404(s, FinanceAccount, account_id, scope, "Account")
    update_account(s, account, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_account(account))


@bp.delete("/accounts/<account_id>")
@require_session
def accounts_delete(account_id: str):
    s = db_session()
    scope = current_scope(s)
    account = get_scoped_or_404(s, FinanceAccount, account_id, scope, "Account")
    delete_account(s, account, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
