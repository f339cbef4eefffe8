# blueprints/departments/services.py
from __future__ import annotations
from typing import Dict, Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Department
from blueprints.clashes.errors import StorageError


def norm_name(name: str | None) -> str:
    return (name or "").strip().lower()


def resolve_names(session: Session, names: Iterable[str]) -> Dict[str, Department]:
    """Имя департамента (trim + lower) -> Department. Неизвестные имена отсутствуют в ответе."""
    wanted = {norm_name(n) for n in names if norm_name(n)}
    if not wanted:
        return {}
    try:
        rows = session.execute(
            select(Department).where(
                func.lower(func.trim(Department.name)).in_(wanted),
                Department.is_deleted.is_(False),
            )
        ).scalars().all()
    except SQLAlchemyError as e:
        raise StorageError("Failed to resolve departments") from e
    return {norm_name(d.name): d for d in rows}


def get_department(session: Session, department_id: str) -> Optional[Department]:
    try:
        d = session.get(Department, department_id)
    except SQLAlchemyError as e:
        raise StorageError("Failed to load department", {"department_id": department_id}) from e
    if d is None or d.is_deleted:
        return None
    return d


def list_departments(session: Session) -> list[Department]:
    return list(session.execute(
        select(Department).where(Department.is_deleted.is_(False)).order_by(Department.id)
    ).scalars().all())
