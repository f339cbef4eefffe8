# blueprints/tenders/routes.py
from __future__ import annotations
from datetime import date

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from extensions import db
from models import ActivityType
from blueprints.activity.services import ActivitySink
from blueprints.auth.routes import department_required
from blueprints.clashes.errors import Forbidden, InvalidInput, NotFound
from blueprints.clashes.services import check_and_store, priorities_from_app
from blueprints.clashes.uow import RECONCILE_LOCK, unit_of_work
from blueprints.departments.services import get_department
from .schemas import TenderIn, TenderUpdate
from .services import (
    GEO_FILTERS, create_tender, distinct_pincodes, get_tender, list_tenders, local_areas,
    owns_tender, update_tender,
)

api_bp = Blueprint("tenders_api", __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


def _parse_date(name: str) -> date | None:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidInput(f"{name} must be an ISO date", {"field": name}) from None


def _geo_args() -> dict:
    out = {}
    for key in GEO_FILTERS:
        value = (request.args.get(key) or "").strip()
        if value:
            out[key] = value
    return out


def _pipeline(pincodes, sink):
    prefix = current_app.config.get("CLASH_ID_PREFIX", "Clash")
    priorities = priorities_from_app()
    results = [check_and_store(db.session, pin, priorities, sink=sink, id_prefix=prefix)
               for pin in pincodes]
    clashes, suggestions, ids = {}, [], []
    for r in results:
        d = r.detection.to_dict()
        clashes.update(d["clashes_by_locality"])
        suggestions += d["suggestions"]
        ids += r.clash_ids
    return {"clashes_by_locality": clashes, "suggestions": suggestions, "clash_ids": ids}


@api_bp.post("/tenders")
@department_required
def create():
    payload = TenderIn.model_validate(_json_body())
    dept_id = current_user.department_id
    if current_user.is_admin:
        dept_id = payload.department_id or dept_id
    elif payload.department_id and payload.department_id != dept_id:
        raise Forbidden("Tenders can only be created for your own department",
                        {"department_id": payload.department_id})
    if not dept_id:
        raise InvalidInput("department_id is required", {"field": "department_id"})
    department = get_department(db.session, dept_id)
    if department is None:
        raise NotFound(f"Department {dept_id} not found", {"department_id": dept_id})

    sink = ActivitySink()
    with unit_of_work(db.session, sink, lock=RECONCILE_LOCK):
        tender = create_tender(db.session, payload, department,
                               prefix=current_app.config.get("TENDER_ID_PREFIX", "TND"))
        sink.record(ActivityType.TENDER_CREATED, f"Tender {tender.tender_id} created",
                    user_id=current_user.id, department_id=department.id,
                    tenderId=tender.tender_id, pincode=tender.pincode)
        report = _pipeline([tender.pincode], sink)
        tender_out = tender.to_dict()
    return jsonify({"ok": True, "tender": tender_out, **report}), 201


@api_bp.put("/tenders/<tender_id>")
@department_required
def update(tender_id: str):
    payload = TenderUpdate.model_validate(_json_body())
    sink = ActivitySink()
    with unit_of_work(db.session, sink, lock=RECONCILE_LOCK):
        tender = get_tender(db.session, tender_id)
        if not current_user.is_admin and not owns_tender(current_user.department, tender):
            raise Forbidden("You can only update tenders of your own department", {"tender_id": tender_id})
        old_pincode = update_tender(db.session, tender, payload)
        sink.record(ActivityType.TENDER_UPDATED, f"Tender {tender.tender_id} updated",
                    user_id=current_user.id, department_id=current_user.department_id,
                    tenderId=tender.tender_id, pincode=tender.pincode)
        pincodes = [tender.pincode] + ([old_pincode] if old_pincode else [])
        report = _pipeline(pincodes, sink)
        tender_out = tender.to_dict()
    return jsonify({"ok": True, "tender": tender_out, **report})


@api_bp.get("/tenders/<tender_id>")
@login_required
def detail(tender_id: str):
    return jsonify({"ok": True, "tender": get_tender(db.session, tender_id).to_dict()})


@api_bp.get("/tenders")
@login_required
def index():
    department = None
    dept_id = request.args.get("department")
    if dept_id:
        department = get_department(db.session, dept_id)
        if department is None:
            raise NotFound(f"Department {dept_id} not found", {"department_id": dept_id})
    start, end = _parse_date("start"), _parse_date("end")
    if start and end and end < start:
        raise InvalidInput("end must be >= start", {"start": start.isoformat(), "end": end.isoformat()})
    items = [t.to_dict() for t in list_tenders(db.session, department=department, start=start, end=end,
                                               **_geo_args())]
    return jsonify({"ok": True, "items": items, "meta": {"total": len(items)}})


@api_bp.get("/tenders/search")
@login_required
def search():
    geo = _geo_args()
    if not geo:
        raise InvalidInput("At least one of pincode, locality, zone, local_area is required",
                           {"fields": list(GEO_FILTERS)})
    items = [t.to_dict() for t in list_tenders(db.session, **geo)]
    return jsonify({"ok": True, "items": items, "meta": {"total": len(items), "filters": geo}})


@api_bp.get("/tenders/pincodes")
@login_required
def pincodes():
    return jsonify({"ok": True, "items": distinct_pincodes(db.session)})


@api_bp.get("/tenders/local-areas")
@login_required
def areas():
    return jsonify({"ok": True, "items": local_areas(db.session, request.args.get("pincode", "").strip() or None)})
