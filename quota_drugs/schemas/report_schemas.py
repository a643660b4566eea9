from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
import uuid
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ReportType(str, Enum):
    """Report rows the spreadsheet exporter can ask for."""

    COST_ANALYSIS = "cost_analysis"
    QUOTA_UTILIZATION = "quota_utilization"
    DEFAULTERS = "defaulters"
    YEARLY_COSTS = "yearly_costs"
    ALL_ENROLLMENTS = "all_enrollments"


# ============= Dashboard Schemas =============
class DashboardOverview(BaseModel):
    """Main dashboard overview statistics."""

    total_departments: int
    total_drugs: int
    total_patients: int
    active_enrollments: int
    potential_defaulters: int
    # Refills recorded in the 30 days up to the as-of day
    recent_refills: int

    model_config = {"from_attributes": True}


# ============= Cost Analysis Schemas =============
class CostAnalysisRow(BaseModel):
    department_id: uuid.UUID
    department_name: str
    drug_id: uuid.UUID
    drug_name: str
    unit_price: Optional[Decimal] = None
    patient_count: int
    total_annual_cost: Decimal
    avg_cost_per_patient: Decimal


class CostAnalysisReport(BaseModel):
    """
    Cost per (department, drug) over a period.

    Only active enrollments with a manually entered cost per day are
    counted; enrollments without one are left out rather than costed at 0.
    """

    start_date: date
    end_date: date
    total_cost: Decimal
    rows: List[CostAnalysisRow]


# ============= Quota Utilization Schemas =============
class QuotaUtilizationRow(BaseModel):
    drug_id: uuid.UUID
    drug_name: str
    department_id: uuid.UUID
    department_name: str
    quota_number: int
    active_patients: int
    available_slots: int
    utilization_percentage: int
    status: str
    status_color: str


# ============= Defaulter Schemas =============
class DefaulterRow(BaseModel):
    enrollment_id: uuid.UUID
    patient_id: uuid.UUID
    patient_name: str
    ic_number: str
    drug_id: uuid.UUID
    drug_name: str
    department_id: uuid.UUID
    department_name: str
    prescription_start_date: Optional[date] = None
    prescription_end_date: Optional[date] = None
    latest_refill_date: Optional[date] = None
    days_since_refill: Optional[int] = None
    spub: bool


# ============= Yearly Cost Schemas =============
class YearlyCostSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_cost: Decimal
    total_enrollments: int
    active_enrollments: int
    cost_bearing_enrollments: int
    average_cost_per_enrollment: Decimal


class DepartmentCostTotal(BaseModel):
    total: Decimal
    count: int


class YearlyCostRow(BaseModel):
    enrollment_id: uuid.UUID
    patient_name: str
    ic_number: str
    drug_name: str
    department_name: str
    prescription_start_date: Optional[date] = None
    prescription_end_date: Optional[date] = None
    is_active: bool
    cost_per_day: Optional[Decimal] = None
    # None when the enrollment is excluded from costing, not a zero cost
    calculated_yearly_cost: Optional[Decimal] = None


class YearlyCostReport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    year: int
    summary: YearlyCostSummary
    department_totals: Dict[str, DepartmentCostTotal]
    enrollments: List[YearlyCostRow]
