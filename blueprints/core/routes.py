from __future__ import annotations
import json, logging
from datetime import datetime
from uuid import uuid4

from flask import g, jsonify, request
from flask_login import login_required
from sqlalchemy import func, select
from werkzeug.wrappers.response import Response

from extensions import db
from models import Clash, Tender
from blueprints.auth.routes import department_required, scoped_department
from blueprints.clashes.resolution import department_resolution_stats, open_clash_count

from . import bp                 # используем bp из __init__.py
from . import api_bp

VISITOR_COOKIE = "visitor_id"
VISITOR_MAX_AGE = 60 * 60 * 24 * 180  # 180 дней

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in ("event","path","method","status","duration_ms","visitor_id",
                    "pincode","locality","clash_id"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _setup_structured_logging(app):
    # корневой логгер: сюда же пишут модули движка (logging.getLogger(__name__))
    for logger in (app.logger, logging.getLogger()):
        has_json = any(
            isinstance(h, logging.StreamHandler)
            and isinstance(getattr(h, "formatter", None), JSONFormatter)
            for h in logger.handlers
        )
        if not has_json:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)
        if logger.level == logging.NOTSET or logger.level > logging.INFO:
            logger.setLevel(logging.INFO)
    app.logger.propagate = False

@bp.before_app_request
def _ensure_visitor_and_start_timer():
    g._req_start = datetime.utcnow()
    vid = request.cookies.get(VISITOR_COOKIE)
    if not vid:
        vid = uuid4().hex
        g._set_visitor_cookie = vid
    g.visitor_id = vid

@bp.after_app_request
def _maybe_set_cookie_and_log(response: Response):
    if getattr(g, "_set_visitor_cookie", None):
        response.set_cookie(
            VISITOR_COOKIE,
            g._set_visitor_cookie,
            max_age=VISITOR_MAX_AGE,
            httponly=False,
            secure=request.is_secure,
            samesite="Lax",
            path="/",
        )
    start = getattr(g, "_req_start", None)
    duration_ms = int((datetime.utcnow() - start).total_seconds() * 1000) if start else None
    extra = {
        "event":"http_request",
        "path":request.path,
        "method":request.method,
        "status":response.status_code,
        "duration_ms":duration_ms,
        "visitor_id":getattr(g, "visitor_id", None),
    }
    # логгер уже настроен в _on_register
    logging.getLogger().info("request handled", extra=extra)
    return response

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

@bp.get("/health")
def health():
    return jsonify({
        "status":"ok",
        "ts": datetime.utcnow().isoformat(timespec="seconds")+"Z",
        "visitor_id": getattr(g, "visitor_id", None),
    })

@api_bp.get("/stats")
@login_required
def stats():
    tenders = db.session.execute(select(func.count(Tender.id))).scalar_one()
    clashes = db.session.execute(select(func.count(Clash.id))).scalar_one()
    open_ = open_clash_count(db.session)
    return jsonify({
        "ok": True,
        "tenders": tenders,
        "clashes": {"total": clashes, "open": open_, "resolved": clashes - open_},
    })

@api_bp.get("/stats/department")
@department_required
def department_stats():
    department = scoped_department()
    return jsonify({"ok": True, **department_resolution_stats(db.session, department.id)})
