from datetime import datetime
from typing import List, Optional
import uuid
from pydantic import BaseModel, field_validator

from quota_drugs.schemas.drug_schemas import QuotaStatusSchema


def _validate_department_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Department name cannot be empty")
    v = v.strip()
    if len(v) < 2 or len(v) > 150:
        raise ValueError("Department name must be between 2 and 150 characters")
    return v


class DepartmentCreateSchema(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_department_name(v)


class DepartmentUpdateSchema(BaseModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_department_name(v)


class DepartmentResponseSchema(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DepartmentListItemSchema(DepartmentResponseSchema):
    """Department row with drug and active enrollment counts."""

    drug_count: int = 0
    total_enrollments: int = 0


class DepartmentSummarySchema(BaseModel):
    """Quota rollup of one department across its drugs."""

    department_id: uuid.UUID
    department_name: str
    drug_count: int
    total_quota: int
    active_patients: int
    available_slots: int
    utilization_percentage: int
    utilization_tier: str
    utilization_color: str
    drugs: List[QuotaStatusSchema]

    model_config = {"from_attributes": True}
