# blueprints/clashes/reschedule.py
"""
Перепланирование тендеров конфликта.

Тендеры сортируются по рангу департамента (затем по исходному началу и id),
первый сохраняет санкционированное начало, каждый следующий стартует на
следующий день после окончания предыдущего. Длительность каждого тендера
(санкционированная) сохраняется, поэтому новые окна не пересекаются.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from models import Tender
from .priority import PriorityTable

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RescheduleItem:
    tender_id: str
    department_id: Optional[str]
    department: str
    sanctioned_start: date
    sanctioned_end: date

    @property
    def duration_days(self) -> int:
        return max(0, (self.sanctioned_end - self.sanctioned_start).days)


@dataclass
class ReschedulePlan:
    # порядок = порядок выполнения работ
    windows: Dict[str, Tuple[date, date]] = field(default_factory=dict)
    start_dates: Dict[str, date] = field(default_factory=dict)
    end_dates: Dict[str, date] = field(default_factory=dict)

    @property
    def order(self) -> List[str]:
        return list(self.windows.keys())

    def window_for(self, tender_id: str) -> Optional[Tuple[date, date]]:
        return self.windows.get(tender_id)


def compute_reschedule(items: Iterable[RescheduleItem], priorities: PriorityTable) -> ReschedulePlan:
    ordered = sorted(
        items,
        key=lambda it: (priorities.rank(it.department), it.sanctioned_start, it.tender_id),
    )
    plan = ReschedulePlan()
    prev_end: Optional[date] = None
    for it in ordered:
        start = it.sanctioned_start if prev_end is None else prev_end + timedelta(days=1)
        end = start + timedelta(days=it.duration_days)
        plan.windows[it.tender_id] = (start, end)
        if it.department_id is not None:
            # спан департамента: самое раннее начало и самый поздний конец его тендеров
            cur_s = plan.start_dates.get(it.department_id)
            cur_e = plan.end_dates.get(it.department_id)
            plan.start_dates[it.department_id] = start if cur_s is None else min(cur_s, start)
            plan.end_dates[it.department_id] = end if cur_e is None else max(cur_e, end)
        prev_end = end
    return plan


def items_from_tenders(tenders: Iterable[Tender], department_ids: Dict[str, str]) -> List[RescheduleItem]:
    """department_ids: нормализованное имя департамента -> id."""
    out = []
    for t in tenders:
        out.append(RescheduleItem(
            tender_id=t.tender_id,
            department_id=department_ids.get(t.department.strip().lower()),
            department=t.department,
            sanctioned_start=t.start_date,
            sanctioned_end=t.completion_date,
        ))
    return out


def apply_plan(session: Session, plan: ReschedulePlan, tenders: Dict[str, Tender]) -> int:
    """Записывает override-окна в тендеры. Наличие всех тендеров проверяет вызывающий."""
    applied = 0
    for tender_id, (start, end) in plan.windows.items():
        if start is None or end is None:
            continue
        t = tenders[tender_id]
        t.updated_start_date = start
        t.updated_end_date = end
        applied += 1
        log.info("tender %s rescheduled to %s..%s", tender_id, start, end)
    session.flush()
    return applied
