from __future__ import annotations

from flask import Blueprint, g, jsonify

from app.fintrack.db import db_session
from app.fintrack.errors import ApiError, json_body
from app.fintrack.modules.profile.service import (
    list_sessions,
    revoke_other_sessions,
    revoke_session,
    serialize_session,
    serialize_user,
    update_profile,
)
from app.fintrack.scope import current_user, require_session

bp = Blueprint("profile", __name__)


def _current_session_id() -> str | None:
    us = getattr(g, "current_session", None)
    return us.id if us else None


@bp.get("/profile")
@require_session
def profile_get():
    return jsonify(serialize_user(current_user()))


@bp.patch("/profile")
@require_session
def profile_patch():
    s = db_session()
    u = current_user()
    body = json_body()
    changes = update_profile(s, u, body)
    s.commit()
    return jsonify({"success": True, **changes})


@bp.get("/profile/sessions")
@require_session
def sessions_list():
    s = db_session()
    current_id = _current_session_id()
    rows = list_sessions(s, current_user())
    return jsonify(
        {
            "status": 200,
            "data": [serialize_session(us, current_id) for us in rows],
            "message": "Sessions fetched successfully",
        }
    )


@bp.delete("/profile/sessions/<session_id>")
@require_session
def sessions_revoke(session_id: str):
    s = db_session()
    revoke_session(s, current_user(), session_id, _current_session_id())
    s.commit()
    return jsonify({"status": 200, "message": "Session revoked successfully"})


@bp.post("/profile/sessions/revoke-all")
@require_session
def sessions_revoke_all():
    s = db_session()
    current_id = _current_session_id()
    if not current_id:
        raise ApiError("Current session not found")
    revoked = revoke_other_sessions(s, current_user(), current_id)
    s.commit()
    return jsonify(
        {
            "status": 200,
            "message": "All other sessions revoked successfully",
            "data": {"revokedCount": revoked},
        }
    )
