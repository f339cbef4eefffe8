# blueprints/clashes/resolution.py
"""
Машина состояний подписания конфликта: OPEN -> RESOLVED.

Каждый участвующий департамент один раз выставляет свой флаг в True
(обратно в False нельзя). Когда последний флаг становится True, в той же
транзакции пересчитываются окна тендеров и записываются как override,
и только потом конфликт помечается решённым.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from models import Clash, ClashDepartment, ClashState, ActivityType
from blueprints.activity.services import ActivitySink
from .errors import AlreadyResolved, AlreadySignedOff, NotFound, RescheduleFailed
from .priority import PriorityTable
from .reconciler import refresh_proposal
from .reschedule import ReschedulePlan, apply_plan

log = logging.getLogger(__name__)


@dataclass
class SignOffResult:
    clash: Clash
    department_id: str
    changed: bool
    resolved_now: bool
    plan: Optional[ReschedulePlan] = None

    def to_dict(self) -> dict:
        out = {
            "clash_id": self.clash.clash_id,
            "department_id": self.department_id,
            "involved_departments": self.clash.involved_departments,
            "is_resolved": bool(self.clash.is_resolved),
            "state": self.clash.state.value,
            "resolved_now": self.resolved_now,
        }
        if self.plan is not None:
            out["schedule"] = {
                tid: {"start": s.isoformat(), "end": e.isoformat()}
                for tid, (s, e) in self.plan.windows.items()
            }
        return out


def get_clash(session: Session, clash_id: str, *, for_update: bool = False) -> Clash:
    q = select(Clash).where(Clash.clash_id == clash_id)
    if for_update:
        q = q.with_for_update()
    clash = session.execute(q).scalars().first()
    if clash is None:
        raise NotFound(f"Clash {clash_id} not found", {"clash_id": clash_id})
    return clash


def clashes_for_department(session: Session, department_id: str) -> list[Clash]:
    return list(session.execute(
        select(Clash)
        .join(ClashDepartment, ClashDepartment.clash_pk == Clash.id)
        .where(ClashDepartment.department_id == department_id)
        .order_by(Clash.id)
    ).scalars().unique().all())


def reschedule_clash(session: Session, clash: Clash, priorities: PriorityTable) -> ReschedulePlan:
    """Пересчитать и применить окна всех тендеров конфликта."""
    plan, tenders = refresh_proposal(session, clash, priorities)
    missing = [t for t in clash.involved_tenders if t not in tenders]
    if missing:
        raise RescheduleFailed("Tenders referenced by the clash no longer exist",
                               {"clash_id": clash.clash_id, "tender_ids": missing})
    apply_plan(session, plan, tenders)
    return plan


def set_department_status(session: Session, clash_id: str, department_id: str, status: bool,
                          priorities: PriorityTable, sink: Optional[ActivitySink] = None,
                          actor_id: int | None = None) -> SignOffResult:
    clash = get_clash(session, clash_id, for_update=True)
    if clash.state is ClashState.RESOLVED:
        raise AlreadyResolved(f"Clash {clash_id} is already resolved", {"clash_id": clash_id})

    entry = clash.department(department_id)
    if entry is None:
        raise NotFound(f"Department {department_id} not found in involved_departments",
                       {"clash_id": clash_id, "department_id": department_id})
    if entry.signed_off:
        raise AlreadySignedOff(
            f"Status for department {department_id} has already been updated and cannot be undone",
            {"clash_id": clash_id, "department_id": department_id},
        )

    now = datetime.utcnow()
    changed = bool(status)
    if status:
        entry.signed_off = True
        entry.signed_off_at = now
    # трогаем строку конфликта, чтобы сработала проверка версии
    clash.updated_at = now

    plan = None
    resolved_now = False
    if clash.all_signed_off():
        plan = reschedule_clash(session, clash, priorities)
        clash.is_resolved = True
        clash.resolved_at = now
        resolved_now = True
    session.flush()

    log.info(
        "department %s set status %s on %s", department_id, bool(status), clash_id,
        extra={"event": "clash_signoff", "clash_id": clash_id, "locality": clash.locality},
    )
    if resolved_now and sink:
        sink.record(
            ActivityType.CLASH_RESOLVED,
            f"Clash {clash_id} has been resolved",
            user_id=actor_id, department_id=department_id,
            clashId=clash_id, locality=clash.locality,
            tenders=clash.involved_tenders, departments=list(clash.involved_departments),
        )
    return SignOffResult(clash=clash, department_id=department_id, changed=changed,
                         resolved_now=resolved_now, plan=plan)


def open_clash_count(session: Session) -> int:
    return session.execute(
        select(func.count(Clash.id)).where(Clash.is_resolved.is_(False))
    ).scalar_one()


def department_resolution_stats(session: Session, department_id: str) -> dict:
    """Решённые/нерешённые конфликты департамента и доля решённых (в %)."""
    rows = session.execute(
        select(Clash.is_resolved, func.count(Clash.id))
        .join(ClashDepartment, ClashDepartment.clash_pk == Clash.id)
        .where(ClashDepartment.department_id == department_id)
        .group_by(Clash.is_resolved)
    ).all()
    counts = {bool(flag): n for flag, n in rows}
    resolved, unresolved = counts.get(True, 0), counts.get(False, 0)
    total = resolved + unresolved
    return {
        "department_id": department_id,
        "resolved": resolved,
        "unresolved": unresolved,
        "total": total,
        "percent_resolved": round(resolved * 100 / total, 2) if total else 0,
    }
