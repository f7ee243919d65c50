from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.fintrack.db import db_session
from app.fintrack.errors import ValidationFailed
from app.fintrack.modules.dashboard.service import build_dashboard, build_insights
from app.fintrack.scope import current_scope, require_session
from app.fintrack.utils import field_error, parse_month

bp = Blueprint("dashboard", __name__)


def _month_arg():
    try:
        return parse_month(request.args.get("month"))
    except ValueError as e:
        raise ValidationFailed([field_error("month", "Month must be formatted as YYYY-MM")]) from e


@bp.get("/dashboard")
@require_session
def dashboard():
    s = db_session()
    return jsonify(build_dashboard(s, current_scope(s), _month_arg()))


@bp.get("/insights")
@require_session
def insights():
    s = db_session()
    return jsonify(build_insights(s, current_scope(s), _month_arg()))
