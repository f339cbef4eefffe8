# tests/test_sweep.py
from datetime import date

import pytest

from app import create_app
from extensions import db
from models import Clash, Department, Tender
from blueprints.clashes.priority import PriorityTable
from blueprints.clashes.sweep import run_startup_sweep, sweep_all


@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Department(id="D1", name="Water", code="WTR"),
            Department(id="D2", name="Electricity", code="ELC"),
        ])
        for i, (dept, pin, start, end) in enumerate([
            ("Water", "400001", date(2025, 1, 1), date(2025, 1, 10)),
            ("Electricity", "400001", date(2025, 1, 5), date(2025, 1, 15)),
            ("Water", "400002", date(2025, 2, 1), date(2025, 2, 10)),
            ("Electricity", "400002", date(2025, 2, 9), date(2025, 2, 20)),
            ("Electricity", "400003", date(2025, 2, 9), date(2025, 2, 20)),
        ], start=1):
            db.session.add(Tender(tender_id=f"TND{i:03d}", department=dept, locality="Ward 1",
                                  pincode=pin, start_date=start, completion_date=end,
                                  total_duration_days=(end - start).days))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


def test_sweep_covers_every_pincode(app):
    summary = sweep_all(db.session, PriorityTable({"Electricity": 1, "Water": 2}))
    assert summary == {"pincodes": 3, "created": 2, "updated": 0, "failed": []}
    assert sorted(c.clash_id for c in db.session.query(Clash)) == ["Clash001", "Clash002"]
    # второй проход ничего не меняет
    again = sweep_all(db.session, PriorityTable({"Electricity": 1, "Water": 2}))
    assert again["created"] == 0 and again["updated"] == 0


def test_startup_sweep_respects_flag(app):
    assert run_startup_sweep(app) is None
    app.config["CLASH_STARTUP_SWEEP"] = True
    assert run_startup_sweep(app)["created"] == 2


def test_cli_sweep(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["clashes", "sweep"])
    assert result.exit_code == 0, result.output
    assert "pincodes=3 created=2" in result.output
