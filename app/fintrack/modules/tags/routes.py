from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.tags.models import Tag
from app.fintrack.modules.tags.service import (
    create_tag,
    delete_tag,
    list_tags,
    serialize_tag,
    update_tag,
    validate_tag_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("tags", __name__)


@bp.get("/tags")
@require_session
def tags_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_tag(t) for t in list_tags(s, scope)])


@bp.post("/tags")
@require_session
def tags_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_tag_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    tag = create_tag(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_tag(tag)), 201


@bp.patch("/tags/<tag_id>")
@require_session
def tags_update(tag_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_tag_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    tag = get_scoped_or_404(s, Tag, tag_id, scope, "Tag")
    update_tag(s, tag, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_tag(tag))


@bp.delete("/tags/<tag_id>")
@require_session
def tags_delete(tag_id: str):
    s = db_session()
    scope = current_scope(s)
    tag = get_scoped_or_404(s, Tag, tag_id, scope, "Tag")
    delete_tag(s, tag, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
