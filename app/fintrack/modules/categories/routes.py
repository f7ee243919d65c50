from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.categories.models import Category
from app.fintrack.modules.categories.service import (
    bulk_create_categories,
    create_category,
    delete_category,
    list_categories,
    serialize_category,
    update_category,
    validate_category_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("categories", __name__)


@bp.get("/categories")
@require_session
def categories_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_category(c) for c in list_categories(s, scope)])


@bp.post("/categories")
@require_session
def categories_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_category_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    category = create_category(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_category(category)), 201


@bp.post("/categories/bulk-create")
@require_session
def categories_bulk_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    items = payload.get("categories")
    if not isinstance(items, list):
        raise ValidationFailed([{"path": ["categories"], "message": "Expected an array of categories"}])
    errors = []
    for i, item in enumerate(items):
        errors.extend(validate_category_payload(item, color_required=True, prefix=["categories", i]))
    if errors:
        raise ValidationFailed(errors)

    created = bulk_create_categories(s, items, current_user(), scope)
    s.commit()
    return jsonify(
        {
            "success": True,
            "count": len(created),
            "categories": [serialize_category(c) for c in created],
        }
    ), 201


@bp.patch("/categories/<category_id>")
@require_session
def categories_update(category_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_category_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    category = get_scoped_or_404(s, Category, category_id, scope, "Category")
    update_category(s, category, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_category(category))


@bp.delete("/categories/<category_id>")
@require_session
def categories_delete(category_id: str):
    s = db_session()
    scope = current_scope(s)
    category = get_scoped_or_404(s, Category, category_id, scope, "Category")
    delete_category(s, category, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
