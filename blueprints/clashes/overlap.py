# blueprints/clashes/overlap.py
from __future__ import annotations
from datetime import date, datetime


def _as_date(v: date | datetime) -> date:
    return v.date() if isinstance(v, datetime) else v


def overlap_days(start1: date | datetime, end1: date | datetime,
                 start2: date | datetime, end2: date | datetime) -> int:
    """Пересечение двух интервалов в целых днях (0, если не пересекаются).

    Интервал с end < start считается нулевой длины в точке start.
    """
    s1, e1 = _as_date(start1), _as_date(end1)
    s2, e2 = _as_date(start2), _as_date(end2)
    e1 = max(e1, s1)
    e2 = max(e2, s2)
    latest_start = max(s1, s2)
    earliest_end = min(e1, e2)
    return max(0, (earliest_end - latest_start).days)
