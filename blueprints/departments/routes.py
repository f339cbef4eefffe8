from __future__ import annotations
from flask import Blueprint, jsonify
from flask_login import login_required

from extensions import db
from blueprints.clashes.errors import NotFound
from .services import get_department, list_departments

api_bp = Blueprint("departments_api", __name__)


@api_bp.get("/departments")
@login_required
def index():
    items = [d.to_dict() for d in list_departments(db.session)]
    return jsonify({"ok": True, "items": items})


@api_bp.get("/departments/<dept_id>")
@login_required
def detail(dept_id: str):
    d = get_department(db.session, dept_id)
    if d is None:
        raise NotFound(f"Department {dept_id} not found", {"department_id": dept_id})
    return jsonify({"ok": True, "department": d.to_dict()})
