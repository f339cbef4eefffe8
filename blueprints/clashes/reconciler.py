# blueprints/clashes/reconciler.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import Clash, ClashDepartment, ClashTender, Tender, ActivityType
from blueprints.activity.services import ActivitySink
from blueprints.departments.services import resolve_names, norm_name
from .detector import ClashEntry
from .errors import StorageError
from .locator import tenders_by_ids
from .priority import PriorityTable
from .reschedule import ReschedulePlan, compute_reschedule, items_from_tenders

log = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)$")


@dataclass
class ReconcileOutcome:
    locality: str
    action: str                      # created | updated | unchanged | skipped
    clash_id: Optional[str] = None
    departments: List[str] = field(default_factory=list)
    tenders: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"locality": self.locality, "action": self.action, "clash_id": self.clash_id,
                "departments": list(self.departments), "tenders": list(self.tenders)}


def next_clash_id(session: Session, prefix: str = "Clash") -> str:
    highest = 0
    for (cid,) in session.execute(select(Clash.clash_id)).all():
        m = _DIGITS.search(cid or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}{highest + 1:03d}"


def refresh_proposal(session: Session, clash: Clash,
                     priorities: PriorityTable) -> Tuple[ReschedulePlan, Dict[str, Tender]]:
    """Пересчитать предлагаемые окна (start_dates/end_dates) по текущим тендерам."""
    tenders = tenders_by_ids(session, clash.involved_tenders)
    depts = resolve_names(session, (t.department for t in tenders.values()))
    plan = compute_reschedule(
        items_from_tenders(tenders.values(), {k: d.id for k, d in depts.items()}),
        priorities,
    )
    for ct in clash.tenders:
        ct.proposed_start, ct.proposed_end = plan.windows.get(ct.tender_id, (None, None))
    for cd in clash.departments:
        cd.proposed_start = plan.start_dates.get(cd.department_id)
        cd.proposed_end = plan.end_dates.get(cd.department_id)
    return plan, tenders


def _accumulate(session: Session, locality: str, entries: List[ClashEntry]):
    names = []
    for e in entries:
        names += [e.department, e.clashing_department]
    resolved = resolve_names(session, names)

    dept_ids: Dict[str, None] = {}     # dict как упорядоченное множество
    tender_ids: Dict[str, None] = {}
    for e in entries:
        d1 = resolved.get(norm_name(e.department))
        d2 = resolved.get(norm_name(e.clashing_department))
        if d1 is None or d2 is None:
            log.warning(
                "unknown department in clash %s/%s (%s, %s), skipping",
                e.tender_id, e.clashing_tender_id, e.department, e.clashing_department,
                extra={"event": "clash_entry_skipped", "locality": locality},
            )
            continue
        dept_ids.setdefault(d1.id)
        dept_ids.setdefault(d2.id)
        tender_ids.setdefault(e.tender_id)
        tender_ids.setdefault(e.clashing_tender_id)
    return list(dept_ids), list(tender_ids)


def _merge(session: Session, clash: Clash, dept_ids: List[str], tender_ids: List[str],
           settled: set) -> tuple[list, list]:
    have_depts = set(clash.involved_departments)
    have_tenders = set(clash.involved_tenders)
    new_depts = [d for d in dept_ids if d not in have_depts]
    new_tenders = [t for t in tender_ids if t not in have_tenders and t not in settled]
    for d in new_depts:
        clash.departments.append(ClashDepartment(department_id=d, signed_off=False))
    for t in new_tenders:
        clash.tenders.append(ClashTender(tender_id=t))
    return new_depts, new_tenders


def reconcile_locality(session: Session, locality: str, entries: List[ClashEntry],
                       priorities: PriorityTable, sink: Optional[ActivitySink] = None,
                       id_prefix: str = "Clash") -> ReconcileOutcome:
    locality = (locality or "").strip()
    if not locality:
        log.error("locality is missing or empty, skipping")
        return ReconcileOutcome(locality="", action="skipped")

    dept_ids, tender_ids = _accumulate(session, locality, entries)
    if len(dept_ids) < 2:
        return ReconcileOutcome(locality=locality, action="skipped",
                                departments=dept_ids, tenders=tender_ids)

    existing = session.execute(
        select(Clash).where(Clash.locality == locality).order_by(Clash.id).with_for_update()
    ).scalars().all()
    open_clash = next((c for c in existing if not c.is_resolved), None)
    settled = {t for c in existing if c.is_resolved for t in c.involved_tenders}

    if open_clash is not None:
        new_depts, new_tenders = _merge(session, open_clash, dept_ids, tender_ids, settled)
        if not new_depts and not new_tenders:
            return ReconcileOutcome(locality=locality, action="unchanged",
                                    clash_id=open_clash.clash_id,
                                    departments=list(open_clash.involved_departments),
                                    tenders=open_clash.involved_tenders)
        open_clash.updated_at = datetime.utcnow()
        session.flush()
        refresh_proposal(session, open_clash, priorities)
        session.flush()
        log.info("clash %s updated", open_clash.clash_id,
                 extra={"event": "clash_updated", "clash_id": open_clash.clash_id, "locality": locality})
        if sink:
            sink.record(
                ActivityType.CLASH_UPDATED,
                f"Clash {open_clash.clash_id} updated with new tenders or departments",
                clashId=open_clash.clash_id, locality=locality,
                newTenders=new_tenders, departments=list(open_clash.involved_departments),
            )
        return ReconcileOutcome(locality=locality, action="updated", clash_id=open_clash.clash_id,
                                departments=list(open_clash.involved_departments),
                                tenders=open_clash.involved_tenders)

    clash = Clash(
        clash_id=next_clash_id(session, id_prefix),
        locality=locality,
        is_resolved=False,
        departments=[ClashDepartment(department_id=d, signed_off=False) for d in dept_ids],
        tenders=[ClashTender(tender_id=t) for t in tender_ids],
    )
    session.add(clash)
    session.flush()
    refresh_proposal(session, clash, priorities)
    session.flush()
    log.info("clash %s detected", clash.clash_id,
             extra={"event": "clash_detected", "clash_id": clash.clash_id, "locality": locality})
    if sink:
        sink.record(
            ActivityType.CLASH_DETECTED,
            f"New clash {clash.clash_id} detected in {locality}",
            clashId=clash.clash_id, locality=locality,
            tenders=tender_ids, departments=dept_ids,
        )
    return ReconcileOutcome(locality=locality, action="created", clash_id=clash.clash_id,
                            departments=dept_ids, tenders=tender_ids)


def reconcile(session: Session, clashes_by_locality: Dict[str, List[ClashEntry]],
              priorities: PriorityTable, sink: Optional[ActivitySink] = None,
              id_prefix: str = "Clash") -> List[ReconcileOutcome]:
    """Слить найденные пары в открытые конфликты локальностей или создать новые."""
    outcomes = []
    try:
        for locality, entries in clashes_by_locality.items():
            outcomes.append(reconcile_locality(session, locality, entries, priorities,
                                               sink=sink, id_prefix=id_prefix))
    except StaleDataError:
        # проигранная гонка версий: unit_of_work отдаст 409
        raise
    except SQLAlchemyError as e:
        raise StorageError("Failed to store clashes") from e
    return outcomes
