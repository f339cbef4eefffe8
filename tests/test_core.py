from __future__ import annotations
import json
import logging
import re
from http.cookies import SimpleCookie

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import User
from blueprints.core.routes import JSONFormatter

VISITOR_COOKIE = "visitor_id"
MAX_AGE = 60 * 60 * 24 * 180  # 180 дней

def _get_cookie_from_headers(headers, name: str):
    for raw in headers.getlist("Set-Cookie"):
        c = SimpleCookie()
        c.load(raw)
        if name in c:
            return c[name]
    return None

def test_health_ok():
    app = create_app("test")
    with app.test_client() as c:
        rv = c.get("/health")
        assert rv.status_code == 200
        data = rv.get_json()
        assert data["status"] == "ok"
        # Должны отдать visitor_id в JSON (созданный или существующий)
        assert "visitor_id" in data

def test_sets_visitor_id_cookie():
    app = create_app("test")
    with app.test_client() as c:
        rv = c.get("/health")
        assert rv.status_code == 200

        cookie = _get_cookie_from_headers(rv.headers, VISITOR_COOKIE)
        assert cookie is not None, "должен быть установлен visitor_id"
        assert re.fullmatch(r"[0-9a-f]{32}", cookie.value), "ожидаем uuid4 hex"
        assert cookie["max-age"] == str(MAX_AGE)

        # Повторный запрос с тем же cookie не должен переустанавливать новый
        rv2 = c.get("/health", headers={"Cookie": f"{VISITOR_COOKIE}={cookie.value}"})
        cookie2 = _get_cookie_from_headers(rv2.headers, VISITOR_COOKIE)
        if cookie2:
            assert cookie2.value == cookie.value

def test_json_formatter_carries_clash_fields():
    rec = logging.LogRecord("blueprints.clashes.reconciler", logging.INFO, __file__, 1,
                            "clash %s detected", ("Clash001",), None)
    rec.event = "clash_detected"
    rec.clash_id = "Clash001"
    rec.locality = "Andheri East"
    out = json.loads(JSONFormatter().format(rec))
    assert out["msg"] == "clash Clash001 detected"
    assert out["event"] == "clash_detected"
    assert out["clash_id"] == "Clash001" and out["locality"] == "Andheri East"
    assert "pincode" not in out

@pytest.fixture()
def client():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        db.session.add(User(email="admin@example.com", password_hash=generate_password_hash("pass"), role="ADMIN"))
        db.session.commit()
        yield app.test_client()
        db.session.remove()
        db.drop_all()

def test_stats(client):
    assert client.get("/api/v1/stats").status_code == 401
    client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "pass"})
    js = client.get("/api/v1/stats").get_json()
    assert js["tenders"] == 0
    assert js["clashes"] == {"total": 0, "open": 0, "resolved": 0}
