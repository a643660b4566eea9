from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
import uuid
from pydantic import BaseModel, field_validator

from quota_drugs.core.filters import IsoDate
from quota_drugs.services.compliance import RefillTag


def _cost_input_as_text(v: Any) -> Any:
    # Numbers are accepted and handed to the cost parser as text
    if isinstance(v, bool):
        raise ValueError("Cost per day must be a number or a product like 0.5*2*3")
    if isinstance(v, (int, float, Decimal)):
        return str(v)
    return v


def _strip_optional_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    return v or None


# ============= Enrollment Schemas =============
class EnrollmentCreateSchema(BaseModel):
    """
    Schema for enrolling a patient on a quota drug.

    ``cost_per_day`` is kept as entered (``"5.50"`` or ``"0.5*2*3"``) and
    normalized by the enrollment service. ``prescription_start_date``
    defaults to the as-of day when omitted.
    """

    patient_id: uuid.UUID
    drug_id: uuid.UUID
    dose_per_day: Optional[str] = None
    duration: Optional[int] = None
    prescription_start_date: Optional[IsoDate] = None
    prescription_end_date: Optional[IsoDate] = None
    latest_refill_date: Optional[IsoDate] = None
    spub: bool = False
    is_active: bool = True
    cost_per_day: Optional[str] = None
    remarks: Optional[str] = None

    @field_validator("cost_per_day", mode="before")
    @classmethod
    def validate_cost_per_day(cls, v: Any) -> Any:
        return _cost_input_as_text(v)

    @field_validator("dose_per_day", "remarks")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional_text(v)


class EnrollmentUpdateSchema(BaseModel):
    """Schema for editing an enrollment. Only the fields sent are applied."""

    patient_id: Optional[uuid.UUID] = None
    drug_id: Optional[uuid.UUID] = None
    dose_per_day: Optional[str] = None
    duration: Optional[int] = None
    prescription_start_date: Optional[IsoDate] = None
    prescription_end_date: Optional[IsoDate] = None
    latest_refill_date: Optional[IsoDate] = None
    spub: Optional[bool] = None
    is_active: Optional[bool] = None
    cost_per_day: Optional[str] = None
    remarks: Optional[str] = None

    @field_validator("cost_per_day", mode="before")
    @classmethod
    def validate_cost_per_day(cls, v: Any) -> Any:
        return _cost_input_as_text(v)

    @field_validator("dose_per_day", "remarks")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_optional_text(v)


class RefillUpdateSchema(BaseModel):
    latest_refill_date: IsoDate


class DeactivateEnrollmentSchema(BaseModel):
    remarks: Optional[str] = None


class MoveToDefaulterSchema(BaseModel):
    reason: Optional[str] = None


class CleanupResultSchema(BaseModel):
    removed: int


class EnrollmentResponseSchema(BaseModel):
    """Enrollment with names resolved and refill compliance as of the request."""

    id: uuid.UUID
    patient_id: uuid.UUID
    drug_id: uuid.UUID
    department_id: Optional[uuid.UUID] = None
    patient_name: Optional[str] = None
    ic_number: Optional[str] = None
    drug_name: Optional[str] = None
    department_name: Optional[str] = None
    dose_per_day: Optional[str] = None
    duration: Optional[int] = None
    prescription_start_date: Optional[date] = None
    prescription_end_date: Optional[date] = None
    latest_refill_date: Optional[date] = None
    spub: bool
    is_active: bool
    cost_per_day: Optional[Decimal] = None
    remarks: Optional[str] = None
    days_since_refill: Optional[int] = None
    refill_tag: RefillTag
    refill_color: str
    is_potential_defaulter: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_enrollment(
        cls, enrollment, as_of: date
    ) -> "EnrollmentResponseSchema":
        status = enrollment.compliance(as_of)
        patient = enrollment.patient
        drug = enrollment.drug
        return cls(
            id=enrollment.id,
            patient_id=enrollment.patient_id,
            drug_id=enrollment.drug_id,
            department_id=drug.department_id if drug else None,
            patient_name=patient.name if patient else None,
            ic_number=patient.ic_number if patient else None,
            drug_name=drug.name if drug else None,
            department_name=drug.department_name if drug else None,
            dose_per_day=enrollment.dose_per_day,
            duration=enrollment.duration,
            prescription_start_date=enrollment.prescription_start_date,
            prescription_end_date=enrollment.prescription_end_date,
            latest_refill_date=enrollment.latest_refill_date,
            spub=enrollment.spub,
            is_active=enrollment.is_active,
            cost_per_day=enrollment.cost_per_day,
            remarks=enrollment.remarks,
            days_since_refill=status.days_since_refill,
            refill_tag=status.refill_tag,
            refill_color=status.refill_color,
            is_potential_defaulter=status.is_potential_defaulter,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )
