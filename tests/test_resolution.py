# tests/test_resolution.py
from datetime import date

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app import create_app
from extensions import db
from models import ActivityLog, Clash, ClashState, Department, Tender
from blueprints.activity.services import ActivitySink
from blueprints.clashes.errors import (
    AlreadyResolved, AlreadySignedOff, ConcurrentUpdate, NotFound, RescheduleFailed,
)
from blueprints.clashes.priority import PriorityTable
from blueprints.clashes.resolution import set_department_status
from blueprints.clashes.services import check_and_store
from blueprints.clashes.uow import unit_of_work

PRIO = PriorityTable({"Electricity": 1, "Water": 2})


@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Department(id="D1", name="Water", code="WTR"),
            Department(id="D2", name="Electricity", code="ELC"),
            Tender(tender_id="TND001", department="Water", locality="Ward 1", pincode="400001",
                   start_date=date(2025, 1, 1), completion_date=date(2025, 1, 10), total_duration_days=9),
            Tender(tender_id="TND002", department="Electricity", locality="Ward 1", pincode="400001",
                   start_date=date(2025, 1, 5), completion_date=date(2025, 1, 15), total_duration_days=10),
        ])
        db.session.commit()
        with unit_of_work(db.session):
            check_and_store(db.session, "400001", PRIO)
        yield app
        db.session.remove()
        db.drop_all()


def sign(dept_id, status=True, sink=None):
    with unit_of_work(db.session, sink):
        return set_department_status(db.session, "Clash001", dept_id, status, PRIO, sink=sink)


def tender(tid):
    return db.session.query(Tender).filter_by(tender_id=tid).one()


def test_first_signoff_keeps_clash_open(app):
    res = sign("D1")
    assert res.changed and not res.resolved_now and res.plan is None
    clash = db.session.query(Clash).one()
    assert clash.state is ClashState.OPEN
    assert clash.involved_departments == {"D1": True, "D2": False}
    assert tender("TND001").updated_start_date is None


def test_last_signoff_resolves_and_reschedules(app):
    sign("D1")
    sink = ActivitySink()
    res = sign("D2", sink=sink)
    assert res.resolved_now
    assert res.to_dict()["schedule"] == {
        "TND002": {"start": "2025-01-05", "end": "2025-01-15"},
        "TND001": {"start": "2025-01-16", "end": "2025-01-25"},
    }
    clash = db.session.query(Clash).one()
    assert clash.is_resolved and clash.resolved_at is not None
    assert (tender("TND002").updated_start_date, tender("TND002").updated_end_date) == (date(2025, 1, 5), date(2025, 1, 15))
    assert (tender("TND001").updated_start_date, tender("TND001").updated_end_date) == (date(2025, 1, 16), date(2025, 1, 25))
    # sanctioned dates untouched
    assert tender("TND001").start_date == date(2025, 1, 1)
    assert db.session.query(ActivityLog).filter_by(activity_type="CLASH_RESOLVED").count() == 1


def test_signoff_cannot_be_undone(app):
    sign("D1")
    with pytest.raises(AlreadySignedOff):
        sign("D1", status=False)
    with pytest.raises(AlreadySignedOff):
        sign("D1", status=True)
    assert db.session.query(Clash).one().involved_departments["D1"] is True


def test_false_on_unset_flag_is_noop(app):
    res = sign("D2", status=False)
    assert not res.changed
    assert db.session.query(Clash).one().involved_departments == {"D1": False, "D2": False}


def test_resolved_clash_rejects_further_calls(app):
    sign("D1")
    sign("D2")
    with pytest.raises(AlreadyResolved):
        sign("D1")
    with pytest.raises(AlreadyResolved):
        sign("D3")


def test_unknown_department_or_clash(app):
    with pytest.raises(NotFound):
        sign("D9")
    with pytest.raises(NotFound):
        with unit_of_work(db.session):
            set_department_status(db.session, "Clash404", "D1", True, PRIO)


def test_reschedule_failure_rolls_back_everything(app):
    sign("D1")
    db.session.delete(tender("TND001"))
    db.session.commit()

    with pytest.raises(RescheduleFailed):
        sign("D2")
    db.session.expire_all()
    clash = db.session.query(Clash).one()
    assert not clash.is_resolved
    assert clash.involved_departments == {"D1": True, "D2": False}
    assert tender("TND002").updated_start_date is None


def test_concurrent_modification_reported(app, monkeypatch):
    def stale(*args, **kwargs):
        raise StaleDataError("UPDATE statement on table 'clashes' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(Session, "flush", stale)
    with pytest.raises(ConcurrentUpdate):
        sign("D1")
    monkeypatch.undo()
    db.session.expire_all()
    assert db.session.query(Clash).one().involved_departments == {"D1": False, "D2": False}


def test_override_needs_both_dates(app):
    t = tender("TND001")
    t.updated_start_date = date(2025, 2, 1)
    db.session.commit()
    assert (t.effective_start, t.effective_end) == (date(2025, 1, 1), date(2025, 1, 10))
    hits = db.session.query(Tender).filter(Tender.effective_start == date(2025, 1, 1)).all()
    assert [h.tender_id for h in hits] == ["TND001"]

    t.updated_end_date = date(2025, 2, 10)
    db.session.commit()
    assert (t.effective_start, t.effective_end) == (date(2025, 2, 1), date(2025, 2, 10))
    hits = db.session.query(Tender).filter(Tender.effective_end == date(2025, 2, 10)).all()
    assert [h.tender_id for h in hits] == ["TND001"]
