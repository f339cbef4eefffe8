from __future__ import annotations
import os
from importlib import import_module
from flask import Flask
from config import config_map
from extensions import db, migrate, login_manager
from werkzeug.security import generate_password_hash
from sqlalchemy import inspect

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблицы может ещё не быть (alembic upgrade и т.п.)
        insp = inspect(db.engine)
        if not insp.has_table("users") or not insp.has_table("common_departments"):
            return

        from models import Department, User  # локальный импорт, чтобы избежать циклов
        created = 0
        for d in app.config.get("DEFAULT_DEPARTMENTS", []):
            if db.session.get(Department, d["id"]):
                continue
            db.session.add(Department(id=d["id"], name=d["name"], code=d["code"]))
            created += 1
        if created:
            db.session.flush()
        for u in app.config.get("DEFAULT_USERS", []):
            if User.query.filter_by(email=u["email"]).first():
                continue
            user = User(
                email=u["email"],
                password_hash=generate_password_hash(u["password"]),
                role=u["role"],
                is_active_flag=True,
            )
            dept_id = u.get("department_id")
            if dept_id and db.session.get(Department, dept_id):
                user.department_id = dept_id
            db.session.add(user)
            created += 1
        if created:
            db.session.commit()

def register_blueprints(app: Flask) -> None:
    # Жёстко импортируем модуль с маршрутами core перед взятием bp
    import_module("blueprints.core.routes")
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import bp as auth_bp, api_bp as auth_api_bp
    from blueprints.clashes.routes import api_bp as clashes_api_bp
    from blueprints.tenders.routes import api_bp as tenders_api_bp
    from blueprints.departments.routes import api_bp as departments_api_bp
    from blueprints.activity.routes import api_bp as activity_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(core_api_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(clashes_api_bp, url_prefix="/api/v1")
    app.register_blueprint(tenders_api_bp, url_prefix="/api/v1")
    app.register_blueprint(departments_api_bp, url_prefix="/api/v1")
    app.register_blueprint(activity_api_bp, url_prefix="/api/v1")

def register_cli(app: Flask) -> None:
    from blueprints.clashes.sweep import clashes_cli
    app.cli.add_command(clashes_cli)

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.setdefault("SECRET_KEY", "change-me-in-prod")
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # --- ВАЖНО: изоляция БД в тестах ---
    # pytest всегда выставляет переменную окружения PYTEST_CURRENT_TEST.
    # Делаем БД в памяти, чтобы никакие изменения из одного теста не протекали в другой.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        # для in-memory и одного потока этого достаточно; если что:
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"check_same_thread": False}})
        app.config["CLASH_STARTUP_SWEEP"] = False
    app.config.setdefault("WTF_CSRF_TIME_LIMIT", None)
    app.config.setdefault("WTF_CSRF_HEADERS", ["X-CSRF-Token", "X-CSRFToken"])

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    register_blueprints(app)
    register_cli(app)
    _seed_from_config(app)

    # разовая сверка конфликтов до начала обслуживания запросов
    from blueprints.clashes.sweep import run_startup_sweep
    run_startup_sweep(app)
    return app
