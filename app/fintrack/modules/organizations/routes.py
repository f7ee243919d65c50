from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.fintrack.db import db_session
from app.fintrack.errors import ApiError, json_body
from app.fintrack.modules.organizations.service import (
    create_organization,
    delete_organization,
    list_user_organizations,
    normalize_slug,
    serialize_organization,
    slug_taken,
    update_organization,
)
from app.fintrack.scope import ORG_HEADER, current_user, require_session

bp = Blueprint("organizations", __name__)


def _envelope(status: int, data, message: str):
    return jsonify({"status": status, "data": data, "message": message}), status


@bp.get("/organization")
@require_session
def organization_list():
    s = db_session()
    rows = list_user_organizations(s, current_user())
    return _envelope(
        200,
        [serialize_organization(org, role) for org, role in rows],
        "Organizations retrieved successfully",
    )


@bp.post("/organization")
@require_session
def organization_create():
    s = db_session()
    body = json_body()
    name = str(body.get("name") or "").strip()
    slug = normalize_slug(body.get("slug"))
    if not name or not slug:
        raise ApiError("Name and slug are required")

    org = create_organization(s, current_user(), name, slug)
    s.commit()
    return _envelope(201, serialize_organization(org), "Organization created successfully")


@bp.post("/organization/update")
@require_session
def organization_update():
    s = db_session()
    body = json_body()
    data = body.get("data")
    if not data or not isinstance(data, dict):
        raise ApiError("Update data is required")
    org_id = body.get("organizationId") or (request.headers.get(ORG_HEADER) or "").strip()
    if not org_id:
        raise ApiError("Organization ID is required")

    org = update_organization(s, current_user(), org_id, data)
    s.commit()
    return _envelope(200, serialize_organization(org), "Organization updated successfully")


@bp.post("/organization/delete")
@require_session
def organization_delete():
    s = db_session()
    body = json_body()
    org_id = body.get("organizationId") or (request.headers.get(ORG_HEADER) or "").strip()
    if not org_id:
        raise ApiError("Organization ID is required")

    delete_organization(s, current_user(), org_id)
    s.commit()
    return _envelope(200, {"deleted": True}, "Organization deleted successfully")


@bp.post("/organization/check-slug")
@require_session
def organization_check_slug():
    s = db_session()
    body = json_body()
    slug = normalize_slug(body.get("slug"))
    if not slug:
        raise ApiError("Slug is required")

    available = not slug_taken(s, slug)
    return _envelope(
        200,
        {"slug": slug, "available": available},
        "Slug is available" if available else "Slug is already taken",
    )
