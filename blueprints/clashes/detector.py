# blueprints/clashes/detector.py
from __future__ import annotations
import logging
from dataclasses import dataclass, asdict
from datetime import date
from itertools import combinations
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import ClashTender
from .errors import StorageError
from .locator import TenderWindow, tenders_for_pincode
from .overlap import overlap_days
from .priority import PriorityTable

log = logging.getLogger(__name__)

PairId = Tuple[str, str]


@dataclass
class ClashEntry:
    tender_id: str
    clashing_tender_id: str
    locality: str
    overlap_days: int
    department: str
    clashing_department: str
    tender_start_date: date
    tender_end_date: date
    clashing_tender_start_date: date
    clashing_tender_end_date: date
    priority: int
    clashing_priority: int

    @property
    def pair_id(self) -> PairId:
        return pair_id(self.tender_id, self.clashing_tender_id)

    def to_dict(self) -> dict:
        out = asdict(self)
        for k in ("tender_start_date", "tender_end_date",
                  "clashing_tender_start_date", "clashing_tender_end_date"):
            out[k] = out[k].isoformat()
        return out


@dataclass
class DetectionResult:
    pincode: str
    clashes_by_locality: Dict[str, List[ClashEntry]]
    suggestions: List[str]
    workflow_by_locality: Dict[str, List[str]]

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.clashes_by_locality.values())

    def to_dict(self) -> dict:
        return {
            "pincode": self.pincode,
            "clashes_by_locality": {
                loc: [e.to_dict() for e in entries]
                for loc, entries in self.clashes_by_locality.items()
            },
            "suggestions": list(self.suggestions),
            "workflow_by_locality": dict(self.workflow_by_locality),
        }


def pair_id(a: str, b: str) -> PairId:
    return (a, b) if a <= b else (b, a)


def existing_clash_pairs(session: Session) -> Set[PairId]:
    """Все 2-сочетания тендеров из уже записанных конфликтов (любого статуса)."""
    try:
        rows = session.execute(select(ClashTender.clash_pk, ClashTender.tender_id)).all()
    except SQLAlchemyError as e:
        raise StorageError("Failed to load existing clashes") from e
    by_clash: Dict[int, List[str]] = {}
    for clash_pk, tender_id in rows:
        by_clash.setdefault(clash_pk, []).append(tender_id)
    pairs: Set[PairId] = set()
    for tenders in by_clash.values():
        for a, b in combinations(sorted(set(tenders)), 2):
            pairs.add((a, b))
    return pairs


def _same_department(a: TenderWindow, b: TenderWindow) -> bool:
    return a.department.strip().lower() == b.department.strip().lower()


def find_clashes(tenders: Iterable[TenderWindow], priorities: PriorityTable,
                 known_pairs: Set[PairId] | None = None) -> Dict[str, List[ClashEntry]]:
    """Попарный поиск пересечений внутри каждой локальности."""
    known_pairs = known_pairs or set()
    by_locality: Dict[str, List[TenderWindow]] = {}
    for t in tenders:
        if not t.locality:
            log.warning("tender %s has no locality, skipping", t.tender_id)
            continue
        by_locality.setdefault(t.locality, []).append(t)

    result: Dict[str, List[ClashEntry]] = {}
    for locality, group in by_locality.items():
        for t1, t2 in combinations(group, 2):
            if pair_id(t1.tender_id, t2.tender_id) in known_pairs:
                continue
            days = overlap_days(t1.start, t1.end, t2.start, t2.end)
            if days <= 0 or _same_department(t1, t2):
                continue
            result.setdefault(locality, []).append(ClashEntry(
                tender_id=t1.tender_id,
                clashing_tender_id=t2.tender_id,
                locality=locality,
                overlap_days=days,
                department=t1.department,
                clashing_department=t2.department,
                tender_start_date=t1.start,
                tender_end_date=t1.end,
                clashing_tender_start_date=t2.start,
                clashing_tender_end_date=t2.end,
                priority=priorities.rank(t1.department),
                clashing_priority=priorities.rank(t2.department),
            ))
    return result


def generate_suggestions(clashes_by_locality: Dict[str, List[ClashEntry]]) -> Tuple[List[str], Dict[str, List[str]]]:
    suggestions: List[str] = []
    workflow: Dict[str, List[str]] = {}
    for locality, entries in clashes_by_locality.items():
        ranked: Dict[str, Tuple[int, str]] = {}
        for e in entries:
            ranked.setdefault(e.tender_id, (e.priority, e.tender_id))
            ranked.setdefault(e.clashing_tender_id, (e.clashing_priority, e.clashing_tender_id))
        sequence = [tid for tid, _ in sorted(ranked.items(), key=lambda kv: kv[1])]
        if sequence:
            suggestions.append(f"In {locality}, reorder work as follows: {' -> '.join(sequence)}")
            workflow[locality] = sequence
    return suggestions, workflow


def detect_clashes(session: Session, pincode, priorities: PriorityTable) -> DetectionResult:
    tenders = tenders_for_pincode(session, pincode)
    known = existing_clash_pairs(session)
    clashes = find_clashes(tenders, priorities, known)
    suggestions, workflow = generate_suggestions(clashes)
    pin = tenders[0].pincode if tenders else str(pincode).strip()
    log.info(
        "clash detection finished",
        extra={"event": "clash_detection", "pincode": pin,
               "tenders": len(tenders), "clashes": sum(len(v) for v in clashes.values())},
    )
    return DetectionResult(pincode=pin, clashes_by_locality=clashes,
                           suggestions=suggestions, workflow_by_locality=workflow)
