from __future__ import annotations

from flask import Blueprint, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed, json_body
from app.fintrack.modules.subscriptions.models import SubscriptionTracking
from app.fintrack.modules.subscriptions.service import (
    create_subscription,
    delete_subscription,
    list_subscriptions,
    serialize_subscription,
    update_subscription,
    validate_subscription_payload,
)
from app.fintrack.scope import current_scope, current_user, get_scoped_or_404, require_session

bp = Blueprint("subscriptions", __name__)


@bp.get("/subscriptions")
@require_session
def subscriptions_list():
    s = db_session()
    scope = current_scope(s)
    return jsonify([serialize_subscription(sub) for sub in list_subscriptions(s, scope)])


@bp.post("/subscriptions")
@require_session
def subscriptions_create():
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_subscription_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    sub = create_subscription(s, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_subscription(sub)), 201


@bp.patch("/subscriptions/<subscription_id>")
@require_session
def subscriptions_update(subscription_id: str):
    s = db_session()
    scope = current_scope(s)
    payload = json_body()

    errors = validate_subscription_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    sub = get_scoped_or_404(s, SubscriptionTracking, subscription_id, scope, "Subscription")
    update_subscription(s, sub, payload, current_user(), scope)
    s.commit()
    return jsonify(serialize_subscription(sub))


@bp.delete("/subscriptions/<subscription_id>")
@require_session
def subscriptions_delete(subscription_id: str):
    s = db_session()
    scope = current_scope(s)
    sub = get_scoped_or_404(s, SubscriptionTracking, subscription_id, scope, "Subscription")
    delete_subscription(s, sub, current_user(), scope)
    s.commit()
    return jsonify({"success": True})
