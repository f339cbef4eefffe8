from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


def _pincode(v):
    if v is None:
        return v
    if isinstance(v, int) and not isinstance(v, bool):
        v = str(v)
    v = str(v).strip()
    if not v.isdigit() or len(v) != 6:
        raise ValueError("pincode must be a 6-digit string")
    return v


class TenderIn(BaseModel):
    # админ создаёт тендер от имени департамента; остальным подставляется свой
    department_id: Optional[str] = Field(None, max_length=20)
    classification: Optional[str] = Field(None, max_length=255)
    sanction_date: Optional[date] = None
    start_date: date
    completion_date: date
    sanction_amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = Field(None, max_length=50)
    locality: str = Field(min_length=1, max_length=255)
    local_area: Optional[str] = Field(None, max_length=255)
    zone: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=255)
    pincode: str

    @field_validator("pincode", mode="before")
    @classmethod
    def _check_pincode(cls, v):
        return _pincode(v)

    @field_validator("locality")
    @classmethod
    def _strip_locality(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("locality must not be blank")
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.completion_date < self.start_date:
            raise ValueError("completion_date must be >= start_date")
        return self


class TenderUpdate(BaseModel):
    classification: Optional[str] = Field(None, max_length=255)
    sanction_date: Optional[date] = None
    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    sanction_amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[str] = Field(None, max_length=50)
    locality: Optional[str] = Field(None, min_length=1, max_length=255)
    local_area: Optional[str] = Field(None, max_length=255)
    zone: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=255)
    pincode: Optional[str] = None

    @field_validator("pincode", mode="before")
    @classmethod
    def _check_pincode(cls, v):
        return _pincode(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.completion_date and self.completion_date < self.start_date:
            raise ValueError("completion_date must be >= start_date")
        return self
