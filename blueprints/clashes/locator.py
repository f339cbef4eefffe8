# blueprints/clashes/locator.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Tender
from .errors import InvalidInput, StorageError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenderWindow:
    tender_id: str
    department: str
    locality: str
    pincode: str
    start: date           # effective
    end: date             # effective

    @classmethod
    def from_model(cls, t: Tender) -> "TenderWindow":
        return cls(
            tender_id=t.tender_id,
            department=t.department,
            locality=(t.locality or "").strip(),
            pincode=t.pincode,
            start=t.effective_start,
            end=t.effective_end,
        )


def normalize_pincode(pincode) -> str:
    value = str(pincode).strip() if pincode is not None else ""
    if not value:
        raise InvalidInput("Pincode is required", {"field": "pincode"})
    return value


def tenders_for_pincode(session: Session, pincode) -> list[TenderWindow]:
    """Все тендеры с данным пинкодом, с эффективными окнами."""
    pin = normalize_pincode(pincode)
    try:
        rows = session.execute(
            select(Tender).where(Tender.pincode == pin).order_by(Tender.tender_id)
        ).scalars().all()
    except SQLAlchemyError as e:
        log.error("tender lookup failed", extra={"event": "tender_lookup_failed", "pincode": pin})
        raise StorageError("Failed to load tenders", {"pincode": pin}) from e
    log.debug("found %d tenders for pincode %s", len(rows), pin)
    return [TenderWindow.from_model(t) for t in rows]


def tenders_by_ids(session: Session, tender_ids) -> dict[str, Tender]:
    ids = list(tender_ids)
    if not ids:
        return {}
    try:
        rows = session.execute(select(Tender).where(Tender.tender_id.in_(ids))).scalars().all()
    except SQLAlchemyError as e:
        raise StorageError("Failed to load tenders", {"tender_ids": ids}) from e
    return {t.tender_id: t for t in rows}
