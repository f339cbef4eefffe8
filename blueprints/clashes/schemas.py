from __future__ import annotations
from pydantic import BaseModel, Field, StrictBool, field_validator


class CheckClashesIn(BaseModel):
    pincode: str = Field(min_length=1, max_length=10)

    @field_validator("pincode", mode="before")
    @classmethod
    def _coerce(cls, v):
        # пинкод иногда приходит числом
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            v = v.strip()
        return v

    @field_validator("pincode")
    @classmethod
    def _digits(cls, v: str):
        if not v.isdigit() or len(v) != 6:
            raise ValueError("pincode must be a 6-digit string")
        return v


class StatusIn(BaseModel):
    status: StrictBool
