# blueprints/clashes/services.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from flask import current_app
from sqlalchemy.orm import Session

from blueprints.activity.services import ActivitySink
from .detector import DetectionResult, detect_clashes
from .priority import PriorityTable
from .reconciler import ReconcileOutcome, reconcile


@dataclass
class CheckResult:
    detection: DetectionResult
    outcomes: List[ReconcileOutcome] = field(default_factory=list)

    @property
    def clash_ids(self) -> List[str]:
        return [o.clash_id for o in self.outcomes if o.clash_id]

    def to_dict(self) -> dict:
        out = self.detection.to_dict()
        out["reconciled"] = [o.to_dict() for o in self.outcomes]
        return out


def priorities_from_app() -> PriorityTable:
    return PriorityTable.from_config(current_app.config)


def check_and_store(session: Session, pincode, priorities: PriorityTable,
                    sink: Optional[ActivitySink] = None, id_prefix: str = "Clash") -> CheckResult:
    """Детект по пинкоду + сверка с хранилищем. Коммит на стороне вызывающего."""
    detection = detect_clashes(session, pincode, priorities)
    outcomes: List[ReconcileOutcome] = []
    if detection.clashes_by_locality:
        outcomes = reconcile(session, detection.clashes_by_locality, priorities,
                             sink=sink, id_prefix=id_prefix)
    return CheckResult(detection=detection, outcomes=outcomes)
