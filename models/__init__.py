from __future__ import annotations
from datetime import datetime, date
from decimal import Decimal
from enum import Enum as PyEnum

from flask_login import UserMixin
from sqlalchemy import (
    ForeignKey, UniqueConstraint, Index, Boolean, Date, DateTime,
    Integer, String, Text, Numeric, JSON, and_, case,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship, Mapped, mapped_column
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db


# ---------- Enums ----------
class ClashState(PyEnum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ActivityType(str, PyEnum):
    CLASH_DETECTED = "CLASH_DETECTED"
    CLASH_UPDATED = "CLASH_UPDATED"
    CLASH_RESOLVED = "CLASH_RESOLVED"
    TENDER_CREATED = "TENDER_CREATED"
    TENDER_UPDATED = "TENDER_UPDATED"
    SYSTEM = "SYSTEM"


class UserRole(str, PyEnum):
    ADMIN = "ADMIN"
    DEPARTMENT = "DEPARTMENT"


def _iso(d: date | datetime | None) -> str | None:
    return d.isoformat() if d else None


# ---------- Directory ----------
class Department(db.Model):
    __tablename__ = "common_departments"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def __repr__(self):
        return f"<Department {self.id} {self.name}>"


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=UserRole.DEPARTMENT.value, index=True)
    department_id: Mapped[str | None] = mapped_column(
        ForeignKey("common_departments.id", ondelete="SET NULL"), nullable=True
    )
    is_active_flag: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    department = relationship("Department")

    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    # Flask-Login ожидает .is_active
    @property
    def is_active(self):
        return bool(self.is_active_flag)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User {self.email}>"


# ---------- Tenders ----------
class Tender(db.Model):
    __tablename__ = "tenders"

    id: Mapped[int] = mapped_column(primary_key=True)
    tender_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    # владелец хранится по имени департамента, не FK
    department: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    classification: Mapped[str | None] = mapped_column(String(255))
    sanction_date: Mapped[date | None] = mapped_column(Date)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    completion_date: Mapped[date] = mapped_column(Date, nullable=False)
    updated_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sanction_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    total_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str | None] = mapped_column(String(50))
    locality: Mapped[str] = mapped_column(String(255), nullable=False)
    local_area: Mapped[str | None] = mapped_column(String(255))
    zone: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str | None] = mapped_column(String(255))
    pincode: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_tenders_pincode_locality", "pincode", "locality"),
    )

    # перенос действует, только если заданы обе даты
    @hybrid_property
    def has_override(self) -> bool:
        return self.updated_start_date is not None and self.updated_end_date is not None

    @has_override.expression
    def has_override(cls):
        return and_(cls.updated_start_date.is_not(None), cls.updated_end_date.is_not(None))

    @hybrid_property
    def effective_start(self) -> date:
        return self.updated_start_date if self.has_override else self.start_date

    @effective_start.expression
    def effective_start(cls):
        return case((cls.has_override, cls.updated_start_date), else_=cls.start_date)

    @hybrid_property
    def effective_end(self) -> date:
        return self.updated_end_date if self.has_override else self.completion_date

    @effective_end.expression
    def effective_end(cls):
        return case((cls.has_override, cls.updated_end_date), else_=cls.completion_date)

    @property
    def sanctioned_days(self) -> int:
        return max(0, (self.completion_date - self.start_date).days)

    def to_dict(self) -> dict:
        return {
            "tender_id": self.tender_id,
            "department": self.department,
            "classification": self.classification,
            "sanction_date": _iso(self.sanction_date),
            "start_date": _iso(self.start_date),
            "completion_date": _iso(self.completion_date),
            "updated_start_date": _iso(self.updated_start_date),
            "updated_end_date": _iso(self.updated_end_date),
            "effective_start_date": _iso(self.effective_start),
            "effective_end_date": _iso(self.effective_end),
            "sanction_amount": (str(self.sanction_amount) if self.sanction_amount is not None else None),
            "total_duration_days": self.total_duration_days,
            "status": self.status,
            "locality": self.locality,
            "local_area": self.local_area,
            "zone": self.zone,
            "city": self.city,
            "pincode": self.pincode,
        }

    def __repr__(self):
        return f"<Tender {self.tender_id}>"


# ---------- Clashes ----------
class Clash(db.Model):
    __tablename__ = "clashes"

    id: Mapped[int] = mapped_column(primary_key=True)
    clash_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    locality: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    departments = relationship(
        "ClashDepartment", back_populates="clash", cascade="all, delete-orphan",
        order_by="ClashDepartment.id", lazy="selectin",
    )
    tenders = relationship(
        "ClashTender", back_populates="clash", cascade="all, delete-orphan",
        order_by="ClashTender.id", lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("ix_clashes_locality_resolved", "locality", "is_resolved"),
    )

    @property
    def state(self) -> ClashState:
        return ClashState.RESOLVED if self.is_resolved else ClashState.OPEN

    @property
    def involved_departments(self) -> dict[str, bool]:
        return {d.department_id: bool(d.signed_off) for d in self.departments}

    @property
    def involved_tenders(self) -> list[str]:
        return [t.tender_id for t in self.tenders]

    def department(self, department_id: str) -> ClashDepartment | None:
        for d in self.departments:
            if d.department_id == department_id:
                return d
        return None

    def all_signed_off(self) -> bool:
        return bool(self.departments) and all(d.signed_off for d in self.departments)

    def to_dict(self) -> dict:
        return {
            "clash_id": self.clash_id,
            "locality": self.locality,
            "state": self.state.value,
            "is_resolved": bool(self.is_resolved),
            "involved_departments": self.involved_departments,
            "involved_tenders": self.involved_tenders,
            "start_dates": {d.department_id: _iso(d.proposed_start) for d in self.departments},
            "end_dates": {d.department_id: _iso(d.proposed_end) for d in self.departments},
            "tender_windows": {
                t.tender_id: {"start": _iso(t.proposed_start), "end": _iso(t.proposed_end)}
                for t in self.tenders
            },
            "created_at": _iso(self.created_at),
            "resolved_at": _iso(self.resolved_at),
        }

    def __repr__(self):
        return f"<Clash {self.clash_id} {self.locality}>"


class ClashDepartment(db.Model):
    __tablename__ = "clash_departments"

    id: Mapped[int] = mapped_column(primary_key=True)
    clash_pk: Mapped[int] = mapped_column(ForeignKey("clashes.id", ondelete="CASCADE"), nullable=False)
    department_id: Mapped[str] = mapped_column(ForeignKey("common_departments.id", ondelete="RESTRICT"), nullable=False, index=True)
    signed_off: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_off_at: Mapped[datetime | None] = mapped_column(DateTime)
    proposed_start: Mapped[date | None] = mapped_column(Date)
    proposed_end: Mapped[date | None] = mapped_column(Date)

    clash = relationship("Clash", back_populates="departments")

    __table_args__ = (
        UniqueConstraint("clash_pk", "department_id", name="uq_clash_department"),
    )


class ClashTender(db.Model):
    __tablename__ = "clash_tenders"

    id: Mapped[int] = mapped_column(primary_key=True)
    clash_pk: Mapped[int] = mapped_column(ForeignKey("clashes.id", ondelete="CASCADE"), nullable=False)
    # ссылка по публичному Tender_ID, без владения
    tender_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    proposed_start: Mapped[date | None] = mapped_column(Date)
    proposed_end: Mapped[date | None] = mapped_column(Date)

    clash = relationship("Clash", back_populates="tenders")

    __table_args__ = (
        UniqueConstraint("clash_pk", "tender_id", name="uq_clash_tender"),
    )


# ---------- Activity log ----------
class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    department_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # "metadata" зарезервировано в declarative, поэтому имя атрибута другое
    details: Mapped[dict | None] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.activity_type,
            "description": self.description,
            "user_id": self.user_id,
            "department_id": self.department_id,
            "metadata": self.details,
            "timestamp": _iso(self.created_at),
        }
