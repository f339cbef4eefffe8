# blueprints/auth/routes.py
from __future__ import annotations
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, abort, current_app
from flask_login import login_user, logout_user, login_required, current_user
from flask_wtf.csrf import generate_csrf, validate_csrf
from wtforms import ValidationError as CSRFValidationError

from extensions import db, login_manager
from models import Department, User, UserRole
from blueprints.clashes.errors import Forbidden, InvalidInput, NotFound
from blueprints.departments.services import get_department

bp = Blueprint("auth", __name__)
api_bp = Blueprint("auth_api", __name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_login_attempts: dict[str, list[float]] = {}  # ключ: ip|email -> [timestamps]

CSRF_EXEMPT_PATHS = ("/api/v1/auth/login", "/api/v1/auth/csrf")


@login_manager.user_loader
def load_user(uid: str) -> Optional[User]:
    try:
        return db.session.get(User, int(uid))
    except (TypeError, ValueError):
        return None


# ---------- CSRF ----------
def verify_csrf() -> None:
    if not current_app.config.get("API_CSRF_ENABLED", True):
        return
    # Только для изменяющих методов
    if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
        return
    # Проверяем только API-префикс
    if not request.path.startswith("/api/"):
        return
    # Разрешаем логин и получение токена без проверки
    if request.path in CSRF_EXEMPT_PATHS:
        return

    token = request.headers.get("X-CSRF-Token") or request.headers.get("X-CSRFToken")
    try:
        validate_csrf(token)
    except CSRFValidationError:
        # Это реальная «плохая форма» запроса → 400
        abort(400, description="CSRF token missing or invalid")


@bp.before_app_request
def _csrf_middleware():
    verify_csrf()


# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"


def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    bucket = _login_attempts.setdefault(_rl_key(email), [])
    # purge старых
    cutoff = now - win
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True


# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != UserRole.ADMIN.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper


def department_required(fn: Callable):
    """Пользователь департамента (или админ)."""
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if current_user.is_admin:
            return fn(*args, **kwargs)
        if getattr(current_user, "role", None) != UserRole.DEPARTMENT.value or not current_user.department_id:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper


def can_act_for(department_id: str | None) -> bool:
    if not current_user.is_authenticated:
        return False
    return current_user.is_admin or (department_id is not None and current_user.department_id == department_id)


def scoped_department() -> Department:
    """Департамент запроса: свой, админ может указать ?department=."""
    dept_id = (request.args.get("department") or "").strip() or current_user.department_id
    if not dept_id:
        raise InvalidInput("department is required", {"field": "department"})
    if not can_act_for(dept_id):
        raise Forbidden("You can only view your own department", {"department_id": dept_id})
    department = get_department(db.session, dept_id)
    if department is None:
        raise NotFound(f"Department {dept_id} not found", {"department_id": dept_id})
    return department


# ---------- обработчики 401/403 ----------
@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"ok": False, "errors": [{"code": "UNAUTHORIZED"}]}), 401


@bp.app_errorhandler(403)
def _forbidden(e):
    return jsonify({"ok": False, "errors": [{"code": "FORBIDDEN"}]}), 403


@bp.app_errorhandler(400)
def _bad_request(e):
    return jsonify({"ok": False, "errors": [{"code": "BAD_REQUEST", "details": getattr(e, "description", None)}]}), 400


# ---------- API ----------
@api_bp.get("/auth/csrf")
def api_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf_token": token})
    resp.set_cookie("csrf_token", token, samesite="Lax", httponly=False, path="/")
    return resp


@api_bp.post("/auth/login")
def api_login():
    payload = request.get_json(silent=True) or request.form or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return jsonify({"ok": False, "errors": [{"code": "MISSING_CREDENTIALS"}]}), 400

    if not _rl_check_and_hit(email):
        return jsonify({"ok": False, "errors": [{"code": "TOO_MANY_ATTEMPTS"}]}), 429

    user: Optional[User] = User.query.filter_by(email=email).first()
    if not user or not user.password_hash or not user.check_password(password):
        return jsonify({"ok": False, "errors": [{"code": "INVALID_CREDENTIALS"}]}), 401

    if not user.is_active:
        return jsonify({"ok": False, "errors": [{"code": "INACTIVE"}]}), 403

    login_user(user, remember=True)
    # успешный вход обнуляет счётчик попыток
    _login_attempts.pop(_rl_key(email), None)
    return jsonify({"ok": True, "user": {
        "id": user.id, "email": user.email, "role": user.role, "department_id": user.department_id,
    }})


@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})


@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": {
        "id": current_user.id, "email": current_user.email,
        "role": current_user.role, "department_id": current_user.department_id,
    }})
