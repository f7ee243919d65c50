from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.fintrack.audit import record_event
from app.fintrack.errors import ApiError
from app.fintrack.modules.accounts.models import ACCOUNT_TYPES, FinanceAccount
from app.fintrack.utils import field_error, iso, money, parse_decimal, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope


def validate_account_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    """Validate account create/update payload. Returns list of structured errors."""
    errors = []
    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(field_error("name", "Name is required"))
    if not partial or "type" in payload:
        if payload.get("type") not in ACCOUNT_TYPES:
            errors.append(field_error("type", f"Invalid type. Must be one of: {', '.join(ACCOUNT_TYPES)}"))
    if "currency" in payload and (not isinstance(payload["currency"], str) or not payload["currency"].strip()):
        errors.append(field_error("currency", "Currency must be a non-empty string"))
    if not partial or "currentBalance" in payload:
        try:
            parse_decimal(payload.get("currentBalance"))
        except ValueError:
            errors.append(field_error("currentBalance", "Balance must be a number"))
    if "isDefault" in payload and not isinstance(payload["isDefault"], bool):
        errors.append(field_error("isDefault", "isDefault must be a boolean"))
    return errors


def serialize_account(a: FinanceAccount) -> dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "type": a.type,
        "currency": a.currency,
        "currentBalance": money(a.current_balance),
        "isDefault": a.is_default,
        "userId": a.user_id,
        "organizationId": a.organization_id,
        "createdAt": iso(a.created_at),
        "updatedAt": iso(a.updated_at),
    }


def list_accounts(s: "Session", scope: "Scope") -> list[FinanceAccount]:
    return (
        s.query(FinanceAccount)
        .filter(scope.clause(FinanceAccount))
        .order_by(FinanceAccount.created_at.desc())
        .all()
    )


def _clear_other_defaults(s: "Session", scope: "Scope", keep_id: str) -> None:
    for other in s.query(FinanceAccount).filter(scope.clause(FinanceAccount), FinanceAccount.id != keep_id):
        if other.is_default:
            other.is_default = False


def create_account(s: "Session", payload: dict, user: "User", scope: "Scope") -> FinanceAccount:
    now = utcnow()
    account = FinanceAccount(
        name=payload["name"].strip(),
        type=payload["type"],
        currency=(payload.get("currency") or "USD").strip().upper(),
        current_balance=parse_decimal(payload.get("currentBalance")),
        is_default=bool(payload.get("isDefault") or False),
        created_at=now,
        updated_at=now,
        **scope.owner_fields(),
    )
    s.add(account)
    s.flush()
    if account.is_default:
        _clear_other_defaults(s, scope, account.id)

    record_event(
        s,
        actor=user,
        action="account.create",
        entity_type="FinanceAccount",
        entity_id=account.id,
        organization_id=scope.organization_id,
        metadata={"name": account.name, "type": account.type, "currency": account.currency},
    )
    return account


def update_account(s: "Session", account: FinanceAccount, payload: dict, user: "User", scope: "Scope") -> FinanceAccount:
    changes = {}

    if "name" in payload:
        new_name = payload["name"].strip()
        if new_name != account.name:
            changes["name"] = {"old": account.name, "new": new_name}
            account.name = new_name

    if "type" in payload and payload["type"] != account.type:
        changes["type"] = {"old": account.type, "new": payload["type"]}
        account.type = payload["type"]

    if "currency" in payload:
        new_currency = payload["currency"].strip().upper()
        if new_currency != account.currency:
            changes["currency"] = {"old": account.currency, "new": new_currency}
            account.currency = new_currency

    if "currentBalance" in payload:
        new_balance = parse_decimal(payload["currentBalance"])
        if new_balance != account.current_balance:
            changes["currentBalance"] = {"old": money(account.current_balance), "new": money(new_balance)}
            account.current_balance = new_balance

    if "isDefault" in payload and payload["isDefault"] != account.is_default:
        changes["isDefault"] = {"old": account.is_default, "new": payload["isDefault"]}
        account.is_default = payload["isDefault"]
        if account.is_default:
            _clear_other_defaults(s, scope, account.id)

    account.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="account.edit",
        entity_type="FinanceAccount",
        entity_id=account.id,
        organization_id=scope.organization_id,
        metadata={"name": account.name, "changes": changes},
    )
    return account


def delete_account(s: "Session", account: FinanceAccount, user: "User", scope: "Scope") -> None:
    from app.fintrack.modules.subscriptions.models import SubscriptionTracking
    from app.fintrack.modules.transactions.models import Transaction

    in_use = (
        s.query(Transaction.id)
        .filter(or_(Transaction.account_id == account.id, Transaction.to_account_id == account.id))
        .first()
    )
    if in_use:
        raise ApiError("Account has transactions; delete them first")

    s.query(SubscriptionTracking).filter(SubscriptionTracking.account_id == account.id).update(
        {SubscriptionTracking.account_id: None}, synchronize_session=False
    )
    record_event(
        s,
        actor=user,
        action="account.delete",
        entity_type="FinanceAccount",
        entity_id=account.id,
        organization_id=scope.organization_id,
        metadata={"name": account.name},
    )
    s.delete(account)


def total_balance(accounts: list[FinanceAccount]) -> Decimal:
    return sum((a.current_balance or Decimal("0") for a in accounts), Decimal("0"))
