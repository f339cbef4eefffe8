# blueprints/activity/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import ActivityLog, ActivityType

log = logging.getLogger(__name__)


@dataclass
class ActivityEvent:
    activity_type: str
    description: str
    user_id: Optional[int] = None
    department_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ActivitySink:
    """
    Журнал активности «выстрелил и забыл».

    События копятся в рамках единицы работы и пишутся отдельным коммитом
    уже после основного. Ошибка записи журнала только логируется.
    """

    def __init__(self):
        self.pending: List[ActivityEvent] = []

    def record(self, activity_type: ActivityType | str, description: str, *,
               user_id: int | None = None, department_id: str | None = None,
               **metadata: Any) -> ActivityEvent:
        ev = ActivityEvent(
            activity_type=getattr(activity_type, "value", activity_type),
            description=description,
            user_id=user_id,
            department_id=department_id,
            metadata=metadata,
        )
        self.pending.append(ev)
        return ev

    def discard(self) -> None:
        self.pending.clear()

    def publish(self, session: Session) -> int:
        if not self.pending:
            return 0
        events, self.pending = self.pending, []
        try:
            for ev in events:
                session.add(ActivityLog(
                    activity_type=ev.activity_type,
                    description=ev.description,
                    user_id=ev.user_id,
                    department_id=ev.department_id,
                    details=ev.metadata or None,
                ))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            log.warning("activity log write failed, %d events dropped", len(events),
                        exc_info=True, extra={"event": "activity_log_failed"})
            return 0
        return len(events)


def recent_activity(session: Session, limit: int = 10,
                    department_id: Optional[str] = None) -> list[ActivityLog]:
    q = select(ActivityLog)
    if department_id is not None:
        q = q.where(ActivityLog.department_id == department_id)
    return list(session.execute(q.order_by(ActivityLog.id.desc()).limit(limit)).scalars().all())
