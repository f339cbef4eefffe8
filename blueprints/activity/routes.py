from __future__ import annotations
from flask import Blueprint, jsonify, request

from extensions import db
from blueprints.auth.routes import admin_required, department_required, scoped_department
from blueprints.clashes.errors import InvalidInput
from .services import recent_activity

MAX_LIMIT = 100

api_bp = Blueprint("activity_api", __name__)


def _limit() -> int:
    try:
        limit = int(request.args.get("limit", 10))
    except ValueError:
        raise InvalidInput("limit must be an integer", {"field": "limit"}) from None
    if limit < 1:
        raise InvalidInput("limit must be positive", {"field": "limit"})
    return min(limit, MAX_LIMIT)


@api_bp.get("/activity")
@admin_required
def index():
    items = [a.to_dict() for a in recent_activity(db.session, _limit())]
    return jsonify({"ok": True, "items": items})


@api_bp.get("/activity/department")
@department_required
def department_feed():
    department = scoped_department()
    items = [a.to_dict() for a in recent_activity(db.session, _limit(), department_id=department.id)]
    return jsonify({"ok": True, "department_id": department.id, "items": items})
