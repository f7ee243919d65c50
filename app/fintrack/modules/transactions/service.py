"""
Ledger writes.

Every transaction moves money on its source account (and, for transfers, on
the destination). Balance changes happen in the same unit of work as the
transaction row so a failed validation leaves both untouched.
"""
from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.fintrack.audit import record_event
from app.fintrack.errors import ApiError, Forbidden, NotFound, ValidationFailed
from app.fintrack.modules.accounts.models import FinanceAccount
from app.fintrack.modules.categories.models import Category
from app.fintrack.modules.payees.models import Payee
from app.fintrack.modules.subscriptions.models import SubscriptionTracking
from app.fintrack.modules.tags.models import Tag
from app.fintrack.modules.transactions.models import TRANSACTION_STATUSES, TRANSACTION_TYPES, Transaction
from app.fintrack.scope import can_access_owner
from app.fintrack.utils import field_error, iso, money, parse_datetime, parse_decimal, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope

LIST_LIMIT = 100
ZERO = Decimal("0")

_NULLABLE_REFS = ("categoryId", "payeeId", "subscriptionId", "toAccountId")


def validate_transaction_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    """Validate transaction create/update payload. Returns list of structured errors."""
    errors = []
    if not partial or "amount" in payload:
        try:
            if parse_decimal(payload.get("amount")) <= ZERO:
                errors.append(field_error("amount", "Amount must be positive"))
        except ValueError:
            errors.append(field_error("amount", "Amount must be a number"))
    if payload.get("feeAmount") not in (None, ""):
        try:
            if parse_decimal(payload["feeAmount"]) < ZERO:
                errors.append(field_error("feeAmount", "Fee cannot be negative"))
        except ValueError:
            errors.append(field_error("feeAmount", "Fee must be a number"))
    if not partial or "type" in payload:
        if payload.get("type") not in TRANSACTION_TYPES:
            errors.append(field_error("type", f"Invalid type. Must be one of: {', '.join(TRANSACTION_TYPES)}"))
    if not partial or "accountId" in payload:
        account_id = payload.get("accountId")
        if not isinstance(account_id, str) or not account_id:
            errors.append(field_error("accountId", "Account is required"))
    if "date" in payload:
        try:
            parse_datetime(payload["date"])
        except ValueError:
            errors.append(field_error("date", "Invalid date"))
    if "description" in payload and payload["description"] is not None and not isinstance(payload["description"], str):
        errors.append(field_error("description", "Description must be a string"))
    if "status" in payload and payload["status"] not in TRANSACTION_STATUSES:
        errors.append(field_error("status", f"Invalid status. Must be one of: {', '.join(TRANSACTION_STATUSES)}"))
    for key in _NULLABLE_REFS:
        if payload.get(key) is not None and not isinstance(payload[key], str):
            errors.append(field_error(key, f"{key} must be a string"))
    tag_ids = payload.get("tagIds")
    if tag_ids is not None and (not isinstance(tag_ids, list) or not all(isinstance(t, str) for t in tag_ids)):
        errors.append(field_error("tagIds", "tagIds must be a list of strings"))

    if not partial and payload.get("type") == "TRANSFER":
        to_id = payload.get("toAccountId")
        if not to_id:
            errors.append(field_error("toAccountId", "Destination account is required for transfers"))
        elif to_id == payload.get("accountId"):
            errors.append(field_error("toAccountId", "Cannot transfer to the same account"))
    return errors


def serialize_transaction(t: Transaction) -> dict[str, Any]:
    return {
        "id": t.id,
        "amount": money(t.amount),
        "feeAmount": money(t.fee_amount),
        "exchangeRate": money(t.exchange_rate),
        "type": t.type,
        "date": iso(t.date),
        "description": t.description,
        "status": t.status,
        "accountId": t.account_id,
        "toAccountId": t.to_account_id,
        "categoryId": t.category_id,
        "payeeId": t.payee_id,
        "subscriptionId": t.subscription_id,
        "tagIds": list(t.tag_ids or []),
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
        "category": {"name": t.category.name, "color": t.category.color} if t.category else None,
        "payee": {"name": t.payee.name} if t.payee else None,
        "account": {"name": t.account.name} if t.account else None,
    }


def scoped_account_ids(s: "Session", scope: "Scope") -> list[str]:
    return [row[0] for row in s.query(FinanceAccount.id).filter(scope.clause(FinanceAccount)).all()]


def list_transactions_for_accounts(s: "Session", account_ids: list[str], limit: int | None = None) -> list[Transaction]:
    """Transactions touching any of `account_ids`, newest first."""
    if not account_ids:
        return []
    q = (
        s.query(Transaction)
        .filter(or_(Transaction.account_id.in_(account_ids), Transaction.to_account_id.in_(account_ids)))
        .order_by(Transaction.date.desc(), Transaction.created_at.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def list_transactions(s: "Session", scope: "Scope", limit: int = LIST_LIMIT) -> list[Transaction]:
    return list_transactions_for_accounts(s, scoped_account_ids(s, scope), limit)


def get_transaction_for_scope(s: "Session", tx_id: str, scope: "Scope") -> Transaction:
    """Missing -> 404; source account outside the active scope -> 403."""
    tx = s.get(Transaction, tx_id)
    if tx is None:
        raise NotFound("Transaction not found")
    source = s.get(FinanceAccount, tx.account_id)
    if source is None or not scope.owns(source):
        raise Forbidden()
    return tx


def _source_account(s: "Session", account_id: str, scope: "Scope") -> FinanceAccount:
    account = s.get(FinanceAccount, account_id)
    if account is None:
        raise NotFound("Account not found")
    if not scope.owns(account):
        raise Forbidden("Forbidden access to account")
    return account


def _destination_account(s: "Session", account_id: str, user: "User") -> FinanceAccount:
    account = s.get(FinanceAccount, account_id)
    if account is None:
        raise NotFound("Destination account not found")
    if not can_access_owner(s, user, account):
        raise Forbidden("Forbidden access to destination account")
    return account


def _check_scoped_ref(s: "Session", model: Any, obj_id: str | None, scope: "Scope", field: str, label: str) -> None:
    if not obj_id:
        return
    obj = s.get(model, obj_id)
    if obj is None or not scope.owns(obj):
        raise ValidationFailed([field_error(field, f"{label} not found")])


def _check_tags(s: "Session", tag_ids: list[str] | None, scope: "Scope") -> list[str] | None:
    if not tag_ids:
        return tag_ids
    unique = list(dict.fromkeys(tag_ids))
    found = {row[0] for row in s.query(Tag.id).filter(scope.clause(Tag), Tag.id.in_(unique)).all()}
    if len(found) != len(unique):
        raise ValidationFailed([field_error("tagIds", "Unknown tag")])
    return unique


def _apply_effect(
    tx_type: str,
    amount: Decimal,
    fee: Decimal,
    source: FinanceAccount,
    destination: FinanceAccount | None,
) -> None:
    if tx_type in ("EXPENSE", "TRANSFER"):
        total = amount + fee
        if source.current_balance < total:
            raise ApiError("Insufficient balance (including fee)")
        source.current_balance = source.current_balance - total
        if tx_type == "TRANSFER" and destination is not None:
            destination.current_balance = destination.current_balance + amount
    elif tx_type == "INCOME":
        source.current_balance = source.current_balance + (amount - fee)
    source.updated_at = utcnow()
    if destination is not None:
        destination.updated_at = source.updated_at


def _revert_effect(s: "Session", tx: Transaction) -> None:
    source = s.get(FinanceAccount, tx.account_id)
    fee = tx.fee_amount or ZERO
    if tx.type == "INCOME":
        source.current_balance = source.current_balance - (tx.amount - fee)
    elif tx.type in ("EXPENSE", "TRANSFER"):
        source.current_balance = source.current_balance + (tx.amount + fee)
        if tx.type == "TRANSFER" and tx.to_account_id:
            destination = s.get(FinanceAccount, tx.to_account_id)
            if destination is not None:
                destination.current_balance = destination.current_balance - tx.amount
                destination.updated_at = utcnow()
    source.updated_at = utcnow()


def _fee(payload: dict, fallback: Decimal = ZERO) -> Decimal:
    raw = payload.get("feeAmount")
    if raw in (None, ""):
        return fallback
    return parse_decimal(raw)


def create_transaction(s: "Session", payload: dict, user: "User", scope: "Scope") -> Transaction:
    amount = parse_decimal(payload["amount"])
    fee = _fee(payload)
    tx_type = payload["type"]

    source = _source_account(s, payload["accountId"], scope)
    destination = None
    if tx_type == "TRANSFER":
        destination = _destination_account(s, payload["toAccountId"], user)

    _check_scoped_ref(s, Category, payload.get("categoryId"), scope, "categoryId", "Category")
    _check_scoped_ref(s, Payee, payload.get("payeeId"), scope, "payeeId", "Payee")
    _check_scoped_ref(s, SubscriptionTracking, payload.get("subscriptionId"), scope, "subscriptionId", "Subscription")
    tag_ids = _check_tags(s, payload.get("tagIds"), scope)

    _apply_effect(tx_type, amount, fee, source, destination)

    now = utcnow()
    tx = Transaction(
        amount=amount,
        fee_amount=fee,
        type=tx_type,
        date=parse_datetime(payload.get("date")) or now,
        description=payload.get("description") or None,
        status=payload.get("status") or "completed",
        account_id=source.id,
        to_account_id=destination.id if destination else None,
        category_id=payload.get("categoryId") or None,
        payee_id=payload.get("payeeId") or None,
        subscription_id=payload.get("subscriptionId") or None,
        tag_ids=tag_ids or [],
        created_at=now,
        updated_at=now,
    )
    s.add(tx)
    s.flush()

    record_event(
        s,
        actor=user,
        action="transaction.create",
        entity_type="Transaction",
        entity_id=tx.id,
        organization_id=scope.organization_id,
        metadata={
            "type": tx.type,
            "amount": money(tx.amount),
            "fee": money(tx.fee_amount),
            "account_id": tx.account_id,
            "to_account_id": tx.to_account_id,
        },
    )
    return tx


def update_transaction(s: "Session", tx: Transaction, payload: dict, user: "User", scope: "Scope") -> Transaction:
    """Revert the old balance effect, then apply the edited one."""
    new_type = payload.get("type") or tx.type
    new_amount = parse_decimal(payload["amount"]) if "amount" in payload else tx.amount
    new_fee = _fee(payload, fallback=tx.fee_amount or ZERO) if "feeAmount" in payload else (tx.fee_amount or ZERO)
    new_account_id = payload.get("accountId") or tx.account_id
    new_to_id = payload["toAccountId"] if "toAccountId" in payload else tx.to_account_id

    if new_type == "TRANSFER":
        if not new_to_id:
            raise ValidationFailed([field_error("toAccountId", "Destination account is required for transfers")])
        if new_to_id == new_account_id:
            raise ValidationFailed([field_error("toAccountId", "Cannot transfer to the same account")])
    else:
        new_to_id = None

    for key, model, label in (
        ("categoryId", Category, "Category"),
        ("payeeId", Payee, "Payee"),
        ("subscriptionId", SubscriptionTracking, "Subscription"),
    ):
        if key in payload:
            _check_scoped_ref(s, model, payload[key], scope, key, label)
    tag_ids = _check_tags(s, payload["tagIds"], scope) if "tagIds" in payload else tx.tag_ids

    before = {"type": tx.type, "amount": money(tx.amount), "fee": money(tx.fee_amount), "account_id": tx.account_id}

    _revert_effect(s, tx)
    source = _source_account(s, new_account_id, scope)
    destination = _destination_account(s, new_to_id, user) if new_type == "TRANSFER" else None
    _apply_effect(new_type, new_amount, new_fee, source, destination)

    tx.type = new_type
    tx.amount = new_amount
    tx.fee_amount = new_fee
    tx.account_id = source.id
    tx.to_account_id = destination.id if destination else None
    if payload.get("date"):
        tx.date = parse_datetime(payload["date"])
    if "description" in payload:
        tx.description = payload["description"] or None
    if "categoryId" in payload:
        tx.category_id = payload["categoryId"] or None
    if "payeeId" in payload:
        tx.payee_id = payload["payeeId"] or None
    if "subscriptionId" in payload:
        tx.subscription_id = payload["subscriptionId"] or None
    if payload.get("status"):
        tx.status = payload["status"]
    tx.tag_ids = list(tag_ids or [])
    tx.updated_at = utcnow()

    record_event(
        s,
        actor=user,
        action="transaction.edit",
        entity_type="Transaction",
        entity_id=tx.id,
        organization_id=scope.organization_id,
        metadata={
            "before": before,
            "after": {"type": tx.type, "amount": money(tx.amount), "fee": money(tx.fee_amount), "account_id": tx.account_id},
        },
    )
    return tx


def delete_transaction(s: "Session", tx: Transaction, user: "User", scope: "Scope") -> None:
    _revert_effect(s, tx)
    record_event(
        s,
        actor=user,
        action="transaction.delete",
        entity_type="Transaction",
        entity_id=tx.id,
        organization_id=scope.organization_id,
        metadata={"type": tx.type, "amount": money(tx.amount), "account_id": tx.account_id},
    )
    s.delete(tx)
