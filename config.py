from __future__ import annotations
import os
from pathlib import Path


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'citysynergy.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # CSRF на изменяющих API-запросах (токен выдаёт /api/v1/auth/csrf)
    API_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    AUTH_RL_MAX = 5
    AUTH_RL_WINDOW = 300

    # None -> таблица приоритетов по умолчанию (blueprints/clashes/priority.py)
    CLASH_DEPARTMENT_PRIORITY: dict[str, int] | None = None
    CLASH_STARTUP_SWEEP = _env_flag("CLASH_STARTUP_SWEEP", False)
    CLASH_ID_PREFIX = "Clash"
    TENDER_ID_PREFIX = "TND"

    SEED_TEST_DATA = False
    DEFAULT_DEPARTMENTS: list[dict] = []
    DEFAULT_USERS: list[dict] = []


class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    DEFAULT_DEPARTMENTS = [
        {"id": "DEPT001", "name": "Disaster Management Authority", "code": "DMA"},
        {"id": "DEPT002", "name": "Dept. Of Waterworks", "code": "WTR"},
        {"id": "DEPT003", "name": "Gas Pipeline Department", "code": "GAS"},
        {"id": "DEPT004", "name": "Dept. of Road Works", "code": "RDW"},
        {"id": "DEPT005", "name": "Dept. of Electricity", "code": "ELC"},
    ]
    DEFAULT_USERS = [
        {"email": "admin@example.com", "password": "pass", "role": "ADMIN"},
        {"email": "water@example.com", "password": "pass", "role": "DEPARTMENT",
         "department_id": "DEPT002"},
        {"email": "power@example.com", "password": "pass", "role": "DEPARTMENT",
         "department_id": "DEPT005"},
    ]


class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CLASH_STARTUP_SWEEP = False
    AUTH_RL_MAX = 50
    # тесты API ходят без токена; CSRF проверяется отдельно в test_auth
    API_CSRF_ENABLED = False


class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []


config_map = {
    "dev": DevConfig,
    "test": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
