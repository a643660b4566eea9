from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional
import uuid
from pydantic import BaseModel, field_validator

if TYPE_CHECKING:
    from quota_drugs.services.quota_calc import QuotaStatus


class CalculationMethod(str, Enum):
    """How long one priced unit of a drug lasts."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    TWICE_YEARLY = "twice_yearly"


def _validate_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Drug name cannot be empty")
    v = v.strip()
    if len(v) > 150:
        raise ValueError("Drug name cannot exceed 150 characters")
    return v


def _validate_quota(v: int) -> int:
    if v < 0:
        raise ValueError("Quota number cannot be negative")
    return v


def _validate_price(v: Optional[Decimal]) -> Optional[Decimal]:
    if v is not None and v < 0:
        raise ValueError("Price cannot be negative")
    return v


# ============= Drug Schemas =============
class DrugBaseSchema(BaseModel):
    """Base schema for drug."""

    name: str
    department_id: uuid.UUID
    quota_number: int
    price: Optional[Decimal] = None
    calculation_method: CalculationMethod = CalculationMethod.DAILY
    remarks: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("quota_number")
    @classmethod
    def validate_quota_number(cls, v: int) -> int:
        return _validate_quota(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _validate_price(v)

    model_config = {"from_attributes": True}


class DrugCreateSchema(DrugBaseSchema):
    """Schema for creating a new drug."""


class DrugUpdateSchema(BaseModel):
    """Schema for updating a drug. All fields are optional."""

    name: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    quota_number: Optional[int] = None
    price: Optional[Decimal] = None
    calculation_method: Optional[CalculationMethod] = None
    remarks: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _validate_name(v)

    @field_validator("quota_number")
    @classmethod
    def validate_quota_number(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        return _validate_quota(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return _validate_price(v)

    model_config = {"from_attributes": True}


class QuotaStatusSchema(BaseModel):
    """Live quota status of one drug."""

    drug_id: uuid.UUID
    drug_name: str
    department_id: uuid.UUID
    department_name: Optional[str] = None
    quota_number: int
    current_active_patients: int
    available_slots: int
    utilization_percentage: int
    utilization_tier: str
    utilization_color: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_status(cls, drug, status: "QuotaStatus") -> "QuotaStatusSchema":
        return cls(
            drug_id=drug.id,
            drug_name=drug.name,
            department_id=drug.department_id,
            department_name=drug.department_name,
            quota_number=status.quota_number,
            current_active_patients=status.active,
            available_slots=status.available,
            utilization_percentage=status.utilization_pct,
            utilization_tier=status.tier,
            utilization_color=status.color,
        )


class DrugResponseSchema(DrugBaseSchema):
    """Drug with its live quota figures."""

    id: uuid.UUID
    department_name: Optional[str] = None
    current_active_patients: int = 0
    available_slots: int = 0
    utilization_percentage: int = 0
    utilization_tier: str = "LOW"
    utilization_color: str = "green"
    suggested_cost_per_day: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_drug(
        cls,
        drug,
        status: "QuotaStatus",
        suggested_cost_per_day: Optional[Decimal] = None,
    ) -> "DrugResponseSchema":
        return cls(
            id=drug.id,
            name=drug.name,
            department_id=drug.department_id,
            department_name=drug.department_name,
            quota_number=drug.quota_number,
            price=drug.price,
            calculation_method=drug.calculation_method,
            remarks=drug.remarks,
            current_active_patients=status.active,
            available_slots=status.available,
            utilization_percentage=status.utilization_pct,
            utilization_tier=status.tier,
            utilization_color=status.color,
            suggested_cost_per_day=suggested_cost_per_day,
            created_at=drug.created_at,
            updated_at=drug.updated_at,
        )
