from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.modules.tags.models import DEFAULT_TAG_COLOR, Tag
from app.fintrack.utils import HEX_COLOR_RE, field_error, iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope


def validate_tag_payload(payload: dict, *, partial: bool = False) -> list[dict[str, Any]]:
    errors = []
    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(field_error("name", "Name is required"))
    if payload.get("color") is not None:
        color = payload["color"]
        if not isinstance(color, str) or not HEX_COLOR_RE.match(color):
            errors.append(field_error("color", "Invalid color hex code"))
    return errors


def serialize_tag(t: Tag) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "color": t.color,
        "userId": t.user_id,
        "organizationId": t.organization_id,
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }


def list_tags(s: "Session", scope: "Scope") -> list[Tag]:
    return s.query(Tag).filter(scope.clause(Tag)).order_by(Tag.created_at.desc()).all()


def create_tag(s: "Session", payload: dict, user: "User", scope: "Scope") -> Tag:
    now = utcnow()
    tag = Tag(
        name=payload["name"].strip(),
        color=payload.get("color") or DEFAULT_TAG_COLOR,
        created_at=now,
        updated_at=now,
        **scope.owner_fields(),
    )
    s.add(tag)
    s.flush()
    record_event(
        s,
        actor=user,
        action="tag.create",
        entity_type="Tag",
        entity_id=tag.id,
        organization_id=scope.organization_id,
        metadata={"name": tag.name},
    )
    return tag


def update_tag(s: "Session", tag: Tag, payload: dict, user: "User", scope: "Scope") -> Tag:
    changes = {}
    if "name" in payload:
        new_name = payload["name"].strip()
        if new_name != tag.name:
            changes["name"] = {"old": tag.name, "new": new_name}
            tag.name = new_name
    if payload.get("color") and payload["color"] != tag.color:
        changes["color"] = {"old": tag.color, "new": payload["color"]}
        tag.color = payload["color"]
    tag.updated_at = utcnow()
    record_event(
        s,
        actor=user,
        action="tag.edit",
        entity_type="Tag",
        entity_id=tag.id,
        organization_id=scope.organization_id,
        metadata={"name": tag.name, "changes": changes},
    )
    return tag


def delete_tag(s: "Session", tag: Tag, user: "User", scope: "Scope") -> int:
    """Delete a tag and strip its id from the scope's transactions. Returns how many were touched."""
    from app.fintrack.modules.transactions.service import list_transactions_for_accounts, scoped_account_ids

    touched = 0
    for tx in list_transactions_for_accounts(s, scoped_account_ids(s, scope)):
        if tx.tag_ids and tag.id in tx.tag_ids:
            tx.tag_ids = [t for t in tx.tag_ids if t != tag.id]
            touched += 1
    record_event(
        s,
        actor=user,
        action="tag.delete",
        entity_type="Tag",
        entity_id=tag.id,
        organization_id=scope.organization_id,
        metadata={"name": tag.name, "transactions_updated": touched},
    )
    s.delete(tag)
    return touched
