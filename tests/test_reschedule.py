# tests/test_reschedule.py
from datetime import date

from blueprints.clashes.priority import PriorityTable, UNRANKED
from blueprints.clashes.reschedule import RescheduleItem, compute_reschedule
from blueprints.clashes.overlap import overlap_days

PRIO = PriorityTable({"Electricity": 1, "Water": 2, "Roads": 3})


def item(tid, dept_id, dept, start, end):
    return RescheduleItem(tender_id=tid, department_id=dept_id, department=dept,
                          sanctioned_start=start, sanctioned_end=end)


def test_priority_table_is_trimmed_and_case_insensitive():
    assert PRIO.rank("  electricity ") == 1
    assert PRIO.rank("Unknown dept") == UNRANKED
    assert "WATER" in PRIO and "Gas" not in PRIO
    assert len(PriorityTable()) == 10


def test_highest_priority_keeps_its_start_and_others_follow():
    plan = compute_reschedule([
        item("A", "D-W", "Water", date(2025, 1, 1), date(2025, 1, 10)),
        item("B", "D-E", "Electricity", date(2025, 1, 5), date(2025, 1, 15)),
    ], PRIO)
    assert plan.order == ["B", "A"]
    assert plan.window_for("B") == (date(2025, 1, 5), date(2025, 1, 15))
    assert plan.window_for("A") == (date(2025, 1, 16), date(2025, 1, 25))
    assert plan.start_dates == {"D-E": date(2025, 1, 5), "D-W": date(2025, 1, 16)}
    assert plan.end_dates == {"D-E": date(2025, 1, 15), "D-W": date(2025, 1, 25)}


def test_durations_preserved_and_windows_disjoint():
    items = [
        item("T1", "D-R", "Roads", date(2025, 3, 1), date(2025, 3, 20)),
        item("T2", "D-W", "Water", date(2025, 3, 2), date(2025, 3, 4)),
        item("T3", "D-E", "Electricity", date(2025, 3, 10), date(2025, 3, 11)),
        item("T4", None, "Somebody Else", date(2025, 2, 1), date(2025, 2, 28)),
    ]
    plan = compute_reschedule(items, PRIO)
    assert plan.order == ["T3", "T2", "T1", "T4"]
    for it in items:
        s, e = plan.window_for(it.tender_id)
        assert (e - s).days == it.duration_days
    windows = list(plan.windows.values())
    for i, (s1, e1) in enumerate(windows):
        for s2, e2 in windows[i + 1:]:
            assert overlap_days(s1, e1, s2, e2) == 0
            assert s2 > e1
    # без id департамента в спанах не участвует
    assert set(plan.start_dates) == {"D-R", "D-W", "D-E"}


def test_same_department_tenders_are_packed_and_spanned():
    plan = compute_reschedule([
        item("A1", "D-W", "Water", date(2025, 1, 1), date(2025, 1, 3)),
        item("A2", "D-W", "Water", date(2025, 1, 2), date(2025, 1, 6)),
        item("B", "D-E", "Electricity", date(2025, 1, 2), date(2025, 1, 4)),
    ], PRIO)
    assert plan.order == ["B", "A1", "A2"]
    assert plan.window_for("A1") == (date(2025, 1, 5), date(2025, 1, 7))
    assert plan.window_for("A2") == (date(2025, 1, 8), date(2025, 1, 12))
    assert plan.start_dates["D-W"] == date(2025, 1, 5)
    assert plan.end_dates["D-W"] == date(2025, 1, 12)


def test_empty_plan():
    plan = compute_reschedule([], PRIO)
    assert plan.windows == {} and plan.order == []


def test_lower_priority_tender_follows_higher_one():
    plan = compute_reschedule([
        item("T1", "D-W", "Water", date(2025, 1, 1), date(2025, 1, 11)),
        item("T2", "D-E", "Electricity", date(2025, 1, 3), date(2025, 1, 8)),
    ], PRIO)
    s2, e2 = plan.window_for("T2")
    s1, e1 = plan.window_for("T1")
    assert (s2, (e2 - s2).days) == (date(2025, 1, 3), 5)
    assert s1 == e2 + (date(2025, 1, 2) - date(2025, 1, 1))
    assert (e1 - s1).days == 10
    assert overlap_days(s1, e1, s2, e2) == 0
