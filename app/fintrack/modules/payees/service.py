from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.modules.payees.models import Payee
from app.fintrack.utils import EMAIL_RE, field_error, iso, optional_str, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope

_TEXT_FIELDS = ("email", "phone", "address", "description")


def validate_payee_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    errors = []
    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(field_error("name", "Name is required"))
    for key in _TEXT_FIELDS:
        if payload.get(key) is not None and not isinstance(payload[key], str):
            errors.append(field_error(key, f"{key} must be a string"))
    email = payload.get("email")
    # Empty string means "no email".
    if isinstance(email, str) and email.strip() and not EMAIL_RE.match(email.strip()):
        errors.append(field_error("email", "Invalid email"))
    return errors


def serialize_payee(p: Payee) -> dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "address": p.address,
        "description": p.description,
        "userId": p.user_id,
        "organizationId": p.organization_id,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }


def list_payees(s: "Session", scope: "Scope") -> list[Payee]:
    return s.query(Payee).filter(scope.clause(Payee)).order_by(Payee.created_at.desc()).all()


def create_payee(s: "Session", payload: dict, user: "User", scope: "Scope") -> Payee:
    now = utcnow()
    payee = Payee(
        name=payload["name"].strip(),
        created_at=now,
        updated_at=now,
        **{key: optional_str(payload, key) for key in _TEXT_FIELDS},
        **scope.owner_fields(),
    )
    s.add(payee)
    s.flush()
    record_event(
        s,
        actor=user,
        action="payee.create",
        entity_type="Payee",
        entity_id=payee.id,
        organization_id=scope.organization_id,
        metadata={"name": payee.name},
    )
    return payee


def update_payee(s: "Session", payee: Payee, payload: dict, user: "User", scope: "Scope") -> Payee:
    changes = {}
    if "name" in payload:
        new_name = payload["name"].strip()
        if new_name != payee.name:
            changes["name"] = {"old": payee.name, "new": new_name}
            payee.name = new_name
    for key in _TEXT_FIELDS:
        if key in payload:
            new_value = optional_str(payload, key)
            if new_value != getattr(payee, key):
                changes[key] = {"old": getattr(payee, key), "new": new_value}
                setattr(payee, key, new_value)
    payee.updated_at = utcnow()
    record_event(
        s,
        actor=user,
        action="payee.edit",
        entity_type="Payee",
        entity_id=payee.id,
        organization_id=scope.organization_id,
        metadata={"name": payee.name, "changes": changes},
    )
    return payee


def delete_payee(s: "Session", payee: Payee, user: "User", scope: "Scope") -> None:
    from app.fintrack.modules.transactions.models import Transaction

    s.query(Transaction).filter(Transaction.payee_id == payee.id).update(
        {Transaction.payee_id: None}, synchronize_session=False
    )
    record_event(
        s,
        actor=user,
        action="payee.delete",
        entity_type="Payee",
        entity_id=payee.id,
        organization_id=scope.organization_id,
        metadata={"name": payee.name},
    )
    s.delete(payee)
