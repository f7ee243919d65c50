from __future__ import annotations

import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.fintrack.models import AuditEvent, User


def _request_context() -> tuple[str | None, str | None, str | None]:
    """(request_id, client_ip, active organization id) when called inside a request."""
    if not has_request_context():
        return None, None, None
    scope = getattr(g, "scope", None)
    return (
        getattr(g, "request_id", None),
        request.remote_addr,
        scope.organization_id if scope is not None else None,
    )


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    organization_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Queue an audit row on `s`; it is written with the caller's commit.
    Metadata values that are not JSON types (Decimal, datetime) are stored as strings.
    """
    request_id, client_ip, scope_org_id = _request_context()
    ev = AuditEvent(
        request_id=request_id,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        organization_id=organization_id or scope_org_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=client_ip,
    )
    s.add(ev)
    return ev
