from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.errors import ApiError, ValidationFailed
from app.fintrack.modules.categories.models import CATEGORY_TYPES, DEFAULT_CATEGORY_COLOR, Category
from app.fintrack.utils import HEX_COLOR_RE, field_error, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User
    from app.fintrack.scope import Scope


def validate_category_payload(
    payload: Any, *, partial: bool = False, color_required: bool = False, prefix: list | None = None
) -> list[dict[str, Any]]:
    """Validate category create/update payload. Returns list of structured errors."""
    path = prefix or []
    if not isinstance(payload, dict):
        return [{"path": path, "message": "Expected an object"}]
    errors = []

    def err(field: str, message: str) -> None:
        e = field_error(field, message)
        e["path"] = path + e["path"]
        errors.append(e)

    if not partial or "name" in payload:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            err("name", "Name is required")
    if not partial or "type" in payload:
        if payload.get("type") not in CATEGORY_TYPES:
            err("type", f"Invalid type. Must be one of: {', '.join(CATEGORY_TYPES)}")
    if color_required or "color" in payload:
        color = payload.get("color")
        if not isinstance(color, str) or not HEX_COLOR_RE.match(color):
            err("color", "Invalid color hex code")
    parent_id = payload.get("parentId")
    if parent_id is not None and not isinstance(parent_id, str):
        err("parentId", "parentId must be a string")
    return errors


def serialize_category(c: Category) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "color": c.color,
        "parentId": c.parent_id,
        "userId": c.user_id,
        "organizationId": c.organization_id,
        "createdAt": iso(c.created_at),
    }


def list_categories(s: "Session", scope: "Scope") -> list[Category]:
    return (
        s.query(Category)
        .filter(scope.clause(Category))
        .order_by(Category.created_at.desc())
        .all()
    )


def _resolve_parent(s: "Session", parent_id: str | None, scope: "Scope") -> str | None:
    if not parent_id:
        return None
    parent = s.get(Category, parent_id)
    if parent is None or not scope.owns(parent):
        raise ValidationFailed([field_error("parentId", "Parent category not found")])
    return parent.id


def create_category(s: "Session", payload: dict, user: "User", scope: "Scope") -> Category:
    category = Category(
        name=payload["name"].strip(),
        type=payload["type"],
        color=payload.get("color") or DEFAULT_CATEGORY_COLOR,
        parent_id=_resolve_parent(s, payload.get("parentId"), scope),
        **scope.owner_fields(),
    )
    s.add(category)
    s.flush()
    record_event(
        s,
        actor=user,
        action="category.create",
        entity_type="Category",
        entity_id=category.id,
        organization_id=scope.organization_id,
        metadata={"name": category.name, "type": category.type},
    )
    return category


def bulk_create_categories(s: "Session", items: list[dict], user: "User", scope: "Scope") -> list[Category]:
    """Insert many categories in one unit of work; parents must already exist."""
    created = []
    for item in items:
        category = Category(
            name=item["name"].strip(),
            type=item["type"],
            color=item["color"],
            parent_id=_resolve_parent(s, item.get("parentId"), scope),
            **scope.owner_fields(),
        )
        s.add(category)
        created.append(category)
    s.flush()
    record_event(
        s,
        actor=user,
        action="category.bulk_create",
        entity_type="Category",
        organization_id=scope.organization_id,
        metadata={"count": len(created), "ids": [c.id for c in created]},
    )
    return created


def update_category(s: "Session", category: Category, payload: dict, user: "User", scope: "Scope") -> Category:
    changes = {}

    if "name" in payload:
        new_name = payload["name"].strip()
        if new_name != category.name:
            changes["name"] = {"old": category.name, "new": new_name}
            category.name = new_name

    if "type" in payload and payload["type"] != category.type:
        changes["type"] = {"old": category.type, "new": payload["type"]}
        category.type = payload["type"]

    if "color" in payload and payload["color"] != category.color:
        changes["color"] = {"old": category.color, "new": payload["color"]}
        category.color = payload["color"]

    if "parentId" in payload:
        new_parent = _resolve_parent(s, payload["parentId"], scope)
        if new_parent is not None and _would_cycle(s, category.id, new_parent):
            raise ApiError("A category cannot be its own ancestor")
        if new_parent != category.parent_id:
            changes["parentId"] = {"old": category.parent_id, "new": new_parent}
            category.parent_id = new_parent

    record_event(
        s,
        actor=user,
        action="category.edit",
        entity_type="Category",
        entity_id=category.id,
        organization_id=scope.organization_id,
        metadata={"name": category.name, "changes": changes},
    )
    return category


def _would_cycle(s: "Session", category_id: str, parent_id: str) -> bool:
    seen = set()
    current: str | None = parent_id
    while current and current not in seen:
        if current == category_id:
            return True
        seen.add(current)
        node = s.get(Category, current)
        current = node.parent_id if node else None
    return False


def delete_category(s: "Session", category: Category, user: "User", scope: "Scope") -> None:
    """Delete a category; children become top-level and transactions become uncategorized."""
    from app.fintrack.modules.subscriptions.models import SubscriptionTracking
    from app.fintrack.modules.transactions.models import Transaction

    s.query(Category).filter(Category.parent_id == category.id).update(
        {Category.parent_id: None}, synchronize_session=False
    )
    s.query(Transaction).filter(Transaction.category_id == category.id).update(
        {Transaction.category_id: None}, synchronize_session=False
    )
    s.query(SubscriptionTracking).filter(SubscriptionTracking.category_id == category.id).update(
        {SubscriptionTracking.category_id: None}, synchronize_session=False
    )
    record_event(
        s,
        actor=user,
        action="category.delete",
        entity_type="Category",
        entity_id=category.id,
        organization_id=scope.organization_id,
        metadata={"name": category.name},
    )
    s.delete(category)
