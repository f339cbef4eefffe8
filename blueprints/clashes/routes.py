# blueprints/clashes/routes.py
from __future__ import annotations
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from pydantic import ValidationError

from extensions import db
from models import Clash
from blueprints.activity.services import ActivitySink
from blueprints.auth.routes import can_act_for, department_required
from blueprints.departments.services import get_department
from .errors import ClashError, Forbidden, InvalidInput, NotFound
from .locator import tenders_by_ids
from .resolution import clashes_for_department, get_clash, set_department_status
from .schemas import CheckClashesIn, StatusIn
from .services import check_and_store, priorities_from_app
from .uow import RECONCILE_LOCK, unit_of_work

api_bp = Blueprint("clashes_api", __name__)
log = logging.getLogger(__name__)


def _errors(errors: list, status: int):
    return jsonify({"ok": False, "errors": errors}), status


def _pydantic_errors_safe(ve: ValidationError):
    errs = ve.errors(include_url=False)
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
    return errs


@api_bp.app_errorhandler(ClashError)
def _clash_error(e: ClashError):
    if e.status >= 500:
        log.error("%s: %s", e.code, e.message, exc_info=e.__cause__ is not None,
                  extra={"event": "clash_error", "path": request.path})
    return _errors([e.to_dict()], e.status)


@api_bp.app_errorhandler(ValidationError)
def _validation_error(e: ValidationError):
    return _errors([{"code": "BAD_REQUEST", "details": _pydantic_errors_safe(e)}], 400)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


def _require_party(clash: Clash) -> None:
    if current_user.is_admin:
        return
    if current_user.department_id not in clash.involved_departments:
        raise Forbidden("Your department is not involved in this clash", {"clash_id": clash.clash_id})


def _with_tender_dates(clash: Clash) -> dict:
    out = clash.to_dict()
    if clash.is_resolved:
        tenders = tenders_by_ids(db.session, clash.involved_tenders)
        keys = ("tender_id", "department", "start_date", "completion_date",
                "updated_start_date", "updated_end_date")
        out["tenders"] = []
        for t in tenders.values():
            td = t.to_dict()
            out["tenders"].append({k: td[k] for k in keys})
    return out


# ---------- detection ----------
@api_bp.post("/clashes/check")
@login_required
def check_clashes():
    payload = CheckClashesIn.model_validate(_json_body())
    sink = ActivitySink()
    with unit_of_work(db.session, sink, lock=RECONCILE_LOCK):
        result = check_and_store(
            db.session, payload.pincode, priorities_from_app(), sink=sink,
            id_prefix=current_app.config.get("CLASH_ID_PREFIX", "Clash"),
        )
    out = {"ok": True, **result.to_dict()}
    ids = result.clash_ids
    out["clashes"] = [get_clash(db.session, cid).to_dict() for cid in dict.fromkeys(ids)]
    return jsonify(out)


# ---------- read ----------
@api_bp.get("/clashes")
@department_required
def list_clashes():
    dept_id = (request.args.get("department") or current_user.department_id or "").strip()
    if not dept_id:
        raise InvalidInput("department query parameter is required")
    if not can_act_for(dept_id):
        raise Forbidden("Cannot list clashes of another department", {"department_id": dept_id})
    if get_department(db.session, dept_id) is None:
        raise NotFound(f"Department {dept_id} not found", {"department_id": dept_id})
    items = [_with_tender_dates(c) for c in clashes_for_department(db.session, dept_id)]
    return jsonify({"ok": True, "department_id": dept_id, "items": items})


@api_bp.get("/clashes/<clash_id>")
@login_required
def get_clash_detail(clash_id: str):
    clash = get_clash(db.session, clash_id)
    _require_party(clash)
    return jsonify({"ok": True, "clash": _with_tender_dates(clash)})


@api_bp.get("/clashes/<clash_id>/departments")
@login_required
def get_clash_departments(clash_id: str):
    clash = get_clash(db.session, clash_id)
    _require_party(clash)
    data = clash.to_dict()
    return jsonify({
        "ok": True,
        "clash_id": clash.clash_id,
        "involved_departments": data["involved_departments"],
        "start_dates": data["start_dates"],
        "end_dates": data["end_dates"],
    })


# ---------- sign-off ----------
@api_bp.put("/clashes/<clash_id>/departments/<dept_id>")
@department_required
def update_department_status(clash_id: str, dept_id: str):
    payload = StatusIn.model_validate(_json_body())
    if not can_act_for(dept_id):
        raise Forbidden("You can only update the status of your own department",
                        {"clash_id": clash_id, "department_id": dept_id})
    sink = ActivitySink()
    with unit_of_work(db.session, sink):
        result = set_department_status(
            db.session, clash_id, dept_id, payload.status, priorities_from_app(),
            sink=sink, actor_id=current_user.id,
        )
        out = result.to_dict()
    return jsonify({"ok": True, **out})
