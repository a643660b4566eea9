from datetime import datetime
from typing import Optional
import uuid
from pydantic import BaseModel, field_validator


def _normalize_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Patient name cannot be empty")
    v = " ".join(v.split()).upper()
    if len(v) > 200:
        raise ValueError("Patient name cannot exceed 200 characters")
    return v


def _normalize_ic_number(v: str) -> str:
    """IC numbers may be passports, so no digit-only rule is applied."""
    if not v or not v.strip():
        raise ValueError("IC number cannot be empty")
    v = v.strip()
    if len(v) > 50:
        raise ValueError("IC number cannot exceed 50 characters")
    return v


# ============= Patient Schemas =============
class PatientCreateSchema(BaseModel):
    """Schema for registering a patient; the name is stored upper-cased."""

    name: str
    ic_number: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _normalize_name(v)

    @field_validator("ic_number")
    @classmethod
    def validate_ic_number(cls, v: str) -> str:
        return _normalize_ic_number(v)


class PatientUpdateSchema(BaseModel):
    name: Optional[str] = None
    ic_number: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _normalize_name(v)

    @field_validator("ic_number")
    @classmethod
    def validate_ic_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _normalize_ic_number(v)


class PatientResponseSchema(BaseModel):
    id: uuid.UUID
    name: str
    ic_number: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
