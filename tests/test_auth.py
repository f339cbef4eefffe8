from __future__ import annotations
import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import Department, User

@pytest.fixture()
def client_app():
    app = create_app("test")
    app.config.update(
        AUTH_RL_MAX=3, AUTH_RL_WINDOW=60,  # агрессивный лимит для теста
        API_CSRF_ENABLED=True,
    )
    with app.app_context():
        db.create_all()
        db.session.add(Department(id="DEPT002", name="Dept. Of Waterworks", code="WTR"))
        db.session.flush()
        db.session.add_all([
            User(email="admin@example.com", password_hash=generate_password_hash("adminpass"), role="ADMIN"),
            User(email="water@example.com", password_hash=generate_password_hash("waterpass"),
                 role="DEPARTMENT", department_id="DEPT002"),
            User(email="gone@example.com", password_hash=generate_password_hash("gonepass"),
                 role="DEPARTMENT", department_id="DEPT002", is_active_flag=False),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture()
def client(client_app):
    return client_app.test_client()

def _get_csrf(client):
    r = client.get("/api/v1/auth/csrf")
    assert r.status_code == 200
    return r.get_json()["csrf_token"]

def test_unauthorized_401(client):
    r = client.get("/api/v1/activity")
    assert r.status_code == 401

def test_forbidden_403(client):
    csrf = _get_csrf(client)
    r = client.post("/api/v1/auth/login", json={"email":"water@example.com","password":"waterpass"},
                    headers={"X-CSRF-Token": csrf})
    assert r.status_code == 200
    # admin-эндпоинт недоступен департаменту
    r2 = client.get("/api/v1/activity")
    assert r2.status_code == 403
    assert r2.get_json()["errors"][0]["code"] == "FORBIDDEN"

def test_login_success_and_me(client):
    csrf = _get_csrf(client)
    r = client.post("/api/v1/auth/login", json={"email":"water@example.com","password":"waterpass"},
                    headers={"X-CSRF-Token": csrf})
    assert r.status_code == 200
    js = r.get_json()
    assert js["ok"] is True and js["user"]["department_id"] == "DEPT002"

    r2 = client.get("/api/v1/auth/me")
    assert r2.status_code == 200
    assert r2.get_json()["user"]["role"] == "DEPARTMENT"

def test_inactive_user_rejected(client):
    r = client.post("/api/v1/auth/login", json={"email":"gone@example.com","password":"gonepass"})
    assert r.status_code == 403

def test_missing_credentials(client):
    r = client.post("/api/v1/auth/login", json={"email":"water@example.com"})
    assert r.status_code == 400

def test_rate_limit_login(client):
    for _ in range(3):  # AUTH_RL_MAX
        r = client.post("/api/v1/auth/login", json={"email":"x@example.com","password":"wrong"})
        assert r.status_code == 401
    r2 = client.post("/api/v1/auth/login", json={"email":"x@example.com","password":"wrong"})
    assert r2.status_code == 429

def test_csrf_required_on_mutating_api(client):
    client.post("/api/v1/auth/login", json={"email":"water@example.com","password":"waterpass"})
    r = client.post("/api/v1/clashes/check", json={"pincode": "400069"})
    assert r.status_code == 400
    assert r.get_json()["errors"][0]["code"] == "BAD_REQUEST"

    csrf = _get_csrf(client)
    r2 = client.post("/api/v1/clashes/check", json={"pincode": "400069"}, headers={"X-CSRF-Token": csrf})
    assert r2.status_code == 200

def test_logout(client):
    csrf = _get_csrf(client)
    r = client.post("/api/v1/auth/login", json={"email":"water@example.com","password":"waterpass"},
                    headers={"X-CSRF-Token": csrf})
    assert r.status_code == 200
    csrf2 = _get_csrf(client)  # новый токен (не обязательно, но корректно)
    r2 = client.post("/api/v1/auth/logout", headers={"X-CSRF-Token": csrf2})
    assert r2.status_code == 200
    # теперь защищённый ресурс снова 401
    r3 = client.get("/api/v1/auth/me")
    assert r3.status_code == 401
