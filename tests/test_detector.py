# tests/test_detector.py
from datetime import date

import pytest

from app import create_app
from extensions import db
from models import Department, Tender, Clash, ClashDepartment, ClashTender
from blueprints.clashes.detector import detect_clashes, find_clashes, pair_id
from blueprints.clashes.errors import InvalidInput
from blueprints.clashes.locator import TenderWindow
from blueprints.clashes.priority import PriorityTable

PRIO = PriorityTable({"Electricity": 1, "Water": 2})


def window(tid, dept, locality, start, end, pincode="400001"):
    return TenderWindow(tender_id=tid, department=dept, locality=locality, pincode=pincode,
                        start=start, end=end)


@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Department(id="D1", name="Water", code="WTR"),
            Department(id="D2", name="Electricity", code="ELC"),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


def _tender(tid, dept, locality, start, end, pincode="400001"):
    return Tender(tender_id=tid, department=dept, locality=locality, pincode=pincode,
                  start_date=start, completion_date=end,
                  total_duration_days=(end - start).days)


def test_pair_overlap_reported_with_priorities():
    out = find_clashes([
        window("A", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        window("B", "Electricity", "Ward 1", date(2025, 1, 5), date(2025, 1, 15)),
    ], PRIO)
    [entry] = out["Ward 1"]
    assert entry.overlap_days == 5
    assert (entry.priority, entry.clashing_priority) == (2, 1)
    assert entry.pair_id == ("A", "B")


def test_different_localities_never_clash():
    out = find_clashes([
        window("A", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        window("B", "Electricity", "Ward 2", date(2025, 1, 1), date(2025, 1, 10)),
    ], PRIO)
    assert out == {}


def test_same_department_and_blank_locality_are_skipped():
    out = find_clashes([
        window("A", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        window("B", " water ", "Ward 1", date(2025, 1, 2), date(2025, 1, 9)),
        window("C", "Electricity", "", date(2025, 1, 2), date(2025, 1, 9)),
    ], PRIO)
    assert out == {}


def test_unranked_departments_still_clash():
    out = find_clashes([
        window("A", "Parks", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        window("B", "Libraries", "Ward 1", date(2025, 1, 2), date(2025, 1, 4)),
    ], PRIO)
    assert len(out["Ward 1"]) == 1


def test_known_pairs_are_excluded():
    tenders = [
        window("A", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        window("B", "Electricity", "Ward 1", date(2025, 1, 5), date(2025, 1, 15)),
    ]
    assert find_clashes(tenders, PRIO, {pair_id("B", "A")}) == {}


def test_detect_uses_effective_dates_and_suggests_order(app):
    t1 = _tender("TND001", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10))
    t2 = _tender("TND002", "Electricity", "Ward 1", date(2025, 2, 1), date(2025, 2, 10))
    # перенос второго тендера вплотную к первому
    t2.updated_start_date, t2.updated_end_date = date(2025, 1, 5), date(2025, 1, 14)
    db.session.add_all([t1, t2])
    db.session.commit()

    res = detect_clashes(db.session, " 400001 ", PRIO)
    assert res.pincode == "400001"
    assert res.total == 1
    assert res.workflow_by_locality == {"Ward 1": ["TND002", "TND001"]}
    assert res.suggestions == ["In Ward 1, reorder work as follows: TND002 -> TND001"]


def test_detect_ignores_pairs_already_stored(app):
    db.session.add_all([
        _tender("TND001", "Water", "Ward 1", date(2025, 1, 1), date(2025, 1, 10)),
        _tender("TND002", "Electricity", "Ward 1", date(2025, 1, 5), date(2025, 1, 15)),
    ])
    clash = Clash(clash_id="Clash001", locality="Ward 1", is_resolved=True,
                  departments=[ClashDepartment(department_id="D1", signed_off=True),
                               ClashDepartment(department_id="D2", signed_off=True)],
                  tenders=[ClashTender(tender_id="TND001"), ClashTender(tender_id="TND002")])
    db.session.add(clash)
    db.session.commit()

    res = detect_clashes(db.session, "400001", PRIO)
    assert res.total == 0 and res.suggestions == []


def test_detect_unknown_pincode_is_empty(app):
    res = detect_clashes(db.session, "999999", PRIO)
    assert res.total == 0 and res.clashes_by_locality == {}


def test_blank_pincode_rejected(app):
    with pytest.raises(InvalidInput):
        detect_clashes(db.session, "   ", PRIO)
