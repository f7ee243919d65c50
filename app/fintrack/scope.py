"""
Tenant scoping.

Every finance resource belongs to exactly one user (personal scope) or exactly
one organization (organization scope). The active scope comes from the
`X-Organization-Id` request header; without it the request works on the
caller's personal data.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any

from flask import g, request
from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.fintrack.errors import Forbidden, NotFound, Unauthorized
from app.fintrack.models import Member, User

ORG_HEADER = "X-Organization-Id"
OWNER_ROLE = "owner"


@dataclass(frozen=True)
class Scope:
    user_id: str
    organization_id: str | None = None

    @property
    def is_organization(self) -> bool:
        return self.organization_id is not None

    def owner_fields(self) -> dict[str, str | None]:
        """Column values for a row created in this scope."""
        if self.organization_id:
            return {"user_id": None, "organization_id": self.organization_id}
        return {"user_id": self.user_id, "organization_id": None}

    def clause(self, model: Any):
        """WHERE clause selecting the rows of `model` visible in this scope."""
        if self.organization_id:
            return model.organization_id == self.organization_id
        return and_(model.user_id == self.user_id, model.organization_id.is_(None))

    def owns(self, obj: Any) -> bool:
        if self.organization_id:
            return obj.organization_id == self.organization_id
        return obj.user_id == self.user_id and obj.organization_id is None


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise Unauthorized()
    return u


def get_membership(s: Session, user_id: str, organization_id: str) -> Member | None:
    return (
        s.query(Member)
        .filter(Member.user_id == user_id, Member.organization_id == organization_id)
        .one_or_none()
    )


def resolve_scope(s: Session, user: User) -> Scope:
    """
    Build the active scope for this request.
    Organization scope requires the caller to be a member of that organization.
    """
    org_id = (request.headers.get(ORG_HEADER) or "").strip() or None
    if org_id is None:
        return Scope(user_id=user.id)
    if get_membership(s, user.id, org_id) is None:
        raise Forbidden("You are not a member of this organization")
    return Scope(user_id=user.id, organization_id=org_id)


def current_scope(s: Session) -> Scope:
    scope = getattr(g, "scope", None)
    if scope is None:
        scope = resolve_scope(s, current_user())
        g.scope = scope
    return scope


def get_scoped_or_404(s: Session, model: Any, obj_id: str, scope: Scope, label: str) -> Any:
    """
    Re-fetch a row by id for update/delete and compare its owner fields.
    Missing -> 404; owned by another user/organization -> 403.
    """
    obj = s.get(model, obj_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    if not scope.owns(obj):
        raise Forbidden()
    return obj


def can_access_owner(s: Session, user: User, obj: Any) -> bool:
    """True when `user` owns `obj` personally or is a member of its organization."""
    if obj.organization_id:
        return get_membership(s, user.id, obj.organization_id) is not None
    return obj.user_id == user.id


def require_session(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless a live session is attached."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            raise Unauthorized()
        return fn(*args, **kwargs)

    return wrapped
