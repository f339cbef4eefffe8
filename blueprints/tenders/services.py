# blueprints/tenders/services.py
from __future__ import annotations
import logging
import re
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Department, Tender
from blueprints.clashes.errors import InvalidInput, NotFound, StorageError
from blueprints.departments.services import norm_name
from .schemas import TenderIn, TenderUpdate

log = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)$")


def next_tender_id(session: Session, prefix: str = "TND") -> str:
    highest = 0
    for (tid,) in session.execute(select(Tender.tender_id)).all():
        m = _DIGITS.search(tid or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}{highest + 1:03d}"


def get_tender(session: Session, tender_id: str) -> Tender:
    t = session.execute(select(Tender).where(Tender.tender_id == tender_id)).scalars().first()
    if t is None:
        raise NotFound(f"Tender {tender_id} not found", {"tender_id": tender_id})
    return t


def owns_tender(department: Optional[Department], tender: Tender) -> bool:
    return department is not None and norm_name(department.name) == norm_name(tender.department)


def create_tender(session: Session, data: TenderIn, department: Department, prefix: str = "TND") -> Tender:
    t = Tender(
        tender_id=next_tender_id(session, prefix),
        department=department.name,
        classification=data.classification,
        sanction_date=data.sanction_date,
        start_date=data.start_date,
        completion_date=data.completion_date,
        sanction_amount=data.sanction_amount,
        total_duration_days=(data.completion_date - data.start_date).days,
        status=data.status or "Active",
        locality=data.locality,
        local_area=data.local_area,
        zone=data.zone,
        city=data.city,
        pincode=data.pincode,
    )
    session.add(t)
    session.flush()
    log.info("tender %s created", t.tender_id,
             extra={"event": "tender_created", "pincode": t.pincode, "locality": t.locality})
    return t


def update_tender(session: Session, tender: Tender, data: TenderUpdate) -> Optional[str]:
    """Частичное обновление. Возвращает старый пинкод, если он поменялся."""
    changes = data.model_dump(exclude_unset=True)
    for key in ("locality", "pincode", "start_date", "completion_date"):
        if key in changes and changes[key] is None:
            raise InvalidInput(f"{key} cannot be null", {"field": key})

    start = changes.get("start_date", tender.start_date)
    end = changes.get("completion_date", tender.completion_date)
    if end < start:
        raise InvalidInput("completion_date must be >= start_date",
                           {"start_date": start.isoformat(), "completion_date": end.isoformat()})

    old_pincode = tender.pincode
    dates_changed = start != tender.start_date or end != tender.completion_date
    if "locality" in changes:
        changes["locality"] = changes["locality"].strip()
    for key, value in changes.items():
        setattr(tender, key, value)
    tender.total_duration_days = (end - start).days
    if dates_changed:
        # старый перенос считался от прежнего санкционированного окна
        tender.updated_start_date = None
        tender.updated_end_date = None
    session.flush()
    log.info("tender %s updated", tender.tender_id,
             extra={"event": "tender_updated", "pincode": tender.pincode, "locality": tender.locality})
    return old_pincode if old_pincode != tender.pincode else None


GEO_FILTERS = ("pincode", "locality", "zone", "local_area")


def list_tenders(session: Session, *, department: Optional[Department] = None,
                 start: Optional[date] = None, end: Optional[date] = None,
                 **geo: Optional[str]) -> list[Tender]:
    """Фильтры: департамент, диапазон эффективного начала и гео-ключи (GEO_FILTERS)."""
    unknown = set(geo) - set(GEO_FILTERS)
    if unknown:
        raise TypeError(f"unknown tender filters: {sorted(unknown)}")
    q = select(Tender)
    if department is not None:
        q = q.where(Tender.department == department.name)
    for key, value in geo.items():
        if value:
            # всё, кроме пинкода, без учёта регистра
            col = getattr(Tender, key)
            q = q.where(col == value) if key == "pincode" else q.where(func.lower(col) == value.strip().lower())
    if start is not None:
        q = q.where(Tender.effective_start >= start)
    if end is not None:
        q = q.where(Tender.effective_start <= end)
    try:
        return list(session.execute(q.order_by(Tender.effective_start, Tender.tender_id)).scalars().all())
    except SQLAlchemyError as e:
        raise StorageError("Failed to load tenders") from e


def distinct_pincodes(session: Session) -> list[str]:
    rows = session.execute(select(Tender.pincode).distinct().order_by(Tender.pincode)).all()
    return [p for (p,) in rows]


def local_areas(session: Session, pincode: Optional[str] = None) -> list[str]:
    q = select(Tender.local_area).where(Tender.local_area.is_not(None)).distinct().order_by(Tender.local_area)
    if pincode:
        q = q.where(Tender.pincode == pincode)
    return [a for (a,) in session.execute(q).all() if a.strip()]
