"""
Idempotent seed-скрипт.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + департаменты/пользователи + демо-тендеры
  python seed.py --ensure-admin  # создать только пользователя admin@example.com (без сидов)
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
После наполнения прогоняется сверка конфликтов по всем пинкодам.
"""
from datetime import date
from decimal import Decimal
import argparse

from app import create_app, _seed_from_config
from extensions import db
from models import Department, Tender, User
from blueprints.clashes.priority import PriorityTable
from blueprints.clashes.sweep import sweep_all

# (department_id, locality, pincode, start, end, classification, amount)
DEMO_TENDERS = [
    ("DEPT002", "Andheri East", "400069", date(2025, 1, 1),  date(2025, 1, 10), "Pipeline Replacement", "1250000"),
    ("DEPT005", "Andheri East", "400069", date(2025, 1, 5),  date(2025, 1, 15), "Cable Laying",         "830000"),
    ("DEPT004", "Andheri East", "400069", date(2025, 1, 12), date(2025, 2, 1),  "Road Resurfacing",     "2100000"),
    ("DEPT003", "Powai",        "400076", date(2025, 3, 1),  date(2025, 3, 20), "Gas Line Extension",   "990000"),
    ("DEPT002", "Powai",        "400076", date(2025, 3, 25), date(2025, 4, 5),  "Valve Maintenance",    "150000"),
]


def get_or_create(model, defaults=None, **by):
    """Идемпотентное создание по уникальным ключам."""
    inst = db.session.query(model).filter_by(**by).first()
    if inst:
        return inst, False
    data = dict(by)
    if defaults:
        data.update(defaults)
    inst = model(**data)
    db.session.add(inst)
    db.session.flush()
    return inst, True


def ensure_admin():
    u, created = get_or_create(User, email="admin@example.com", defaults={"role": "ADMIN", "password_hash": ""})
    if created or not u.password_hash:
        u.set_password("pass")
    db.session.commit()
    return u


def seed_demo_tenders():
    created = 0
    for i, (dept_id, locality, pin, start, end, cls_, amount) in enumerate(DEMO_TENDERS, start=1):
        dept = db.session.get(Department, dept_id)
        if dept is None:
            continue
        _, was_created = get_or_create(
            Tender, tender_id=f"TND{i:03d}",
            defaults=dict(
                department=dept.name, classification=cls_, sanction_date=start,
                start_date=start, completion_date=end, sanction_amount=Decimal(amount),
                total_duration_days=(end - start).days, status="Active",
                locality=locality, city="Mumbai", pincode=pin,
            ),
        )
        created += int(was_created)
    db.session.commit()
    return created


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--reset", action="store_true", help="drop_all + create_all перед сидом")
    ap.add_argument("--ensure-admin", action="store_true", help="только пользователь admin")
    args = ap.parse_args()

    app = create_app("dev")
    with app.app_context():
        if args.reset:
            db.drop_all()
        db.create_all()
        if args.ensure_admin:
            ensure_admin()
            print("admin ensured")
            return
        _seed_from_config(app)
        n = seed_demo_tenders()
        summary = sweep_all(db.session, PriorityTable.from_config(app.config),
                            id_prefix=app.config.get("CLASH_ID_PREFIX", "Clash"))
        print(f"tenders created: {n}; clashes created: {summary['created']}, updated: {summary['updated']}")


if __name__ == "__main__":
    main()
