"""
Organizations and their owner-only settings.

Membership is what grants access to an organization's scope; the `owner`
role is additionally required to rename, re-slug or delete it.
"""
from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.errors import ApiError, Forbidden, ValidationFailed
from app.fintrack.models import Member, Organization
from app.fintrack.scope import OWNER_ROLE, get_membership
from app.fintrack.utils import field_error, iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User


def normalize_slug(raw: Any) -> str:
    return str(raw or "").strip().lower()


def _dump_metadata(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def _load_metadata(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def serialize_organization(org: Organization, role: str | None = None) -> dict[str, Any]:
    data = {
        "id": org.id,
        "name": org.name,
        "slug": org.slug,
        "logo": org.logo,
        "metadata": _load_metadata(org.metadata_json),
        "createdAt": iso(org.created_at),
    }
    if role is not None:
        data["role"] = role
    return data


def list_user_organizations(s: "Session", user: "User") -> list[tuple[Organization, str]]:
    rows = (
        s.query(Organization, Member.role)
        .join(Member, Member.organization_id == Organization.id)
        .filter(Member.user_id == user.id)
        .order_by(Organization.created_at)
        .all()
    )
    return [(org, role) for org, role in rows]


def slug_taken(s: "Session", slug: str, exclude_id: str | None = None) -> bool:
    q = s.query(Organization.id).filter(Organization.slug == slug)
    if exclude_id:
        q = q.filter(Organization.id != exclude_id)
    return q.first() is not None


def create_organization(s: "Session", user: "User", name: str, slug: str) -> Organization:
    """Create the organization and its owner membership in one unit of work."""
    slug = normalize_slug(slug)
    if slug_taken(s, slug):
        raise ApiError("Organization slug already exists")
    now = utcnow()
    org = Organization(name=name.strip(), slug=slug, created_by_user_id=user.id, created_at=now)
    s.add(org)
    s.flush()
    s.add(Member(organization_id=org.id, user_id=user.id, role=OWNER_ROLE, created_at=now, updated_at=now))
    record_event(
        s,
        actor=user,
        action="organization.create",
        entity_type="Organization",
        entity_id=org.id,
        organization_id=org.id,
        metadata={"name": org.name, "slug": org.slug},
    )
    return org


def require_owner(s: "Session", user: "User", organization_id: str, action: str) -> Member:
    membership = get_membership(s, user.id, organization_id)
    if membership is None:
        raise Forbidden("You are not a member of this organization")
    if membership.role != OWNER_ROLE:
        raise Forbidden(f"Only organization owners can {action}")
    return membership


def update_organization(s: "Session", user: "User", organization_id: str, data: dict) -> Organization:
    require_owner(s, user, organization_id, "update organization details")
    org = s.get(Organization, organization_id)
    if org is None:
        raise ApiError("Organization not found", 404)

    changes = {}
    if data.get("name"):
        new_name = str(data["name"]).strip()
        if new_name != org.name:
            changes["name"] = {"old": org.name, "new": new_name}
            org.name = new_name
    if data.get("slug"):
        new_slug = normalize_slug(data["slug"])
        if slug_taken(s, new_slug, exclude_id=org.id):
            raise ApiError("Organization slug already exists")
        if new_slug != org.slug:
            changes["slug"] = {"old": org.slug, "new": new_slug}
            org.slug = new_slug
    if "logo" in data:
        logo = data["logo"]
        if logo is not None and not isinstance(logo, str):
            raise ValidationFailed([field_error("logo", "Logo must be a string or null")])
        org.logo = logo or None
        changes["logo"] = True
    if "metadata" in data:
        org.metadata_json = _dump_metadata(data["metadata"])
        changes["metadata"] = True

    record_event(
        s,
        actor=user,
        action="organization.edit",
        entity_type="Organization",
        entity_id=org.id,
        organization_id=org.id,
        metadata={"changes": changes},
    )
    return org


def delete_organization(s: "Session", user: "User", organization_id: str) -> None:
    """Owner-only. Removes the organization and every row in its scope."""
    from app.fintrack.modules.accounts.models import FinanceAccount
    from app.fintrack.modules.categories.models import Category
    from app.fintrack.modules.payees.models import Payee
    from app.fintrack.modules.reminders.models import Reminder
    from app.fintrack.modules.subscriptions.models import SubscriptionTracking
    from app.fintrack.modules.tags.models import Tag
    from app.fintrack.modules.transactions.models import Transaction

    require_owner(s, user, organization_id, "delete organizations")
    org = s.get(Organization, organization_id)
    if org is None:
        raise ApiError("Organization not found", 404)

    account_ids = [
        row[0] for row in s.query(FinanceAccount.id).filter(FinanceAccount.organization_id == organization_id).all()
    ]
    if account_ids:
        s.query(Transaction).filter(Transaction.account_id.in_(account_ids)).delete(synchronize_session=False)
        # Transfers from other scopes into this organization lose their destination.
        s.query(Transaction).filter(Transaction.to_account_id.in_(account_ids)).update(
            {Transaction.to_account_id: None}, synchronize_session=False
        )
    s.query(SubscriptionTracking).filter(SubscriptionTracking.organization_id == organization_id).delete(
        synchronize_session=False
    )
    s.query(FinanceAccount).filter(FinanceAccount.organization_id == organization_id).delete(synchronize_session=False)
    s.query(Category).filter(Category.organization_id == organization_id).update(
        {Category.parent_id: None}, synchronize_session=False
    )
    for model in (Category, Payee, Reminder, Tag):
        s.query(model).filter(model.organization_id == organization_id).delete(synchronize_session=False)

    record_event(
        s,
        actor=user,
        action="organization.delete",
        entity_type="Organization",
        entity_id=org.id,
        organization_id=org.id,
        metadata={"name": org.name, "slug": org.slug, "accounts_deleted": len(account_ids)},
    )
    s.delete(org)
