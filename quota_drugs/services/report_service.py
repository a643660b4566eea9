"""
Cross-cutting report views built from the quota, compliance and cost rules.

Every call re-reads the current departments, drugs and enrollments; nothing
is carried over between calls. Enrollments whose patient, drug or department
row has gone missing are skipped with a warning instead of failing the run.
"""

from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Tuple, Union

from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ValidationError
from quota_drugs.core.filters import EnrollmentFilters, ReportFilters
from quota_drugs.core.utils import LoggerMixin
from quota_drugs.models.enrollment_model import Enrollment
from quota_drugs.repositories.department_repo import DepartmentRepository
from quota_drugs.repositories.drug_repo import DrugRepository
from quota_drugs.repositories.enrollment_repo import EnrollmentRepository
from quota_drugs.repositories.patient_repo import PatientRepository
from quota_drugs.schemas.enrollment_schemas import EnrollmentResponseSchema
from quota_drugs.schemas.report_schemas import (
    CostAnalysisReport,
    CostAnalysisRow,
    DashboardOverview,
    DefaulterRow,
    DepartmentCostTotal,
    QuotaUtilizationRow,
    ReportType,
    YearlyCostReport,
    YearlyCostRow,
    YearlyCostSummary,
)
from quota_drugs.services.cost_calc import enrollment_period_cost, safe_average
from quota_drugs.services.quota_calc import (
    REPORT_UTILIZATION_POLICY,
    compute_quota_status,
)

RECENT_REFILL_DAYS = 30


def calendar_year(year: int) -> Tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def report_period(filters: ReportFilters, as_of: date) -> Tuple[date, date]:
    """
    Resolve the cost window for a report.

    With no bounds the window is the calendar year given in ``filters.year``,
    or the year of ``as_of``. A single bound is completed from its own year.
    """
    year_start, year_end = calendar_year(filters.year or as_of.year)
    if filters.end_date and not filters.start_date:
        year_start = date(filters.end_date.year, 1, 1)
    if filters.start_date and not filters.end_date:
        year_end = date(filters.start_date.year, 12, 31)
    period_start = filters.start_date or year_start
    period_end = filters.end_date or year_end
    if period_start > period_end:
        raise ValidationError(
            "start_date must be on or before end_date", field="start_date"
        )
    return period_start, period_end


class ReportService(LoggerMixin):
    """Service composing report rows for the dashboard, reports and exports."""

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.enrollment_repo = EnrollmentRepository(self.db)
        self.drug_repo = DrugRepository(self.db)

    # ============= Dashboard =============
    async def dashboard(self, as_of: date) -> DashboardOverview:
        active = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(active_only=True)
        )
        usable = self._usable(active, "dashboard")
        defaulters = [e for e in usable if e.compliance(as_of).is_potential_defaulter]
        recent_refills = await self.enrollment_repo.count_refills_between(
            as_of - timedelta(days=RECENT_REFILL_DAYS), as_of
        )
        return DashboardOverview(
            total_departments=await DepartmentRepository(self.db).count_departments(),
            total_drugs=await self.drug_repo.count_drugs(),
            total_patients=await PatientRepository(self.db).count_patients(),
            active_enrollments=len(usable),
            potential_defaulters=len(defaulters),
            recent_refills=recent_refills,
        )

    # ============= Cost Analysis =============
    async def cost_analysis(
        self, filters: ReportFilters, as_of: date
    ) -> CostAnalysisReport:
        """
        Cost per (department, drug) over the report period.

        ``patient_count`` counts active enrollments with a manual cost per
        day; enrollments without one are excluded, not costed at zero.
        Groups with no such enrollment are omitted.
        """
        period_start, period_end = report_period(filters, as_of)
        enrollments = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(
                department_id=filters.department_id,
                active_only=True,
                start_date=period_start,
                end_date=period_end,
            )
        )

        groups: Dict[Any, Dict[str, Any]] = {}
        for enrollment in self._usable(enrollments, "cost_analysis"):
            cost = enrollment_period_cost(enrollment, period_start, period_end, as_of)
            if cost is None:
                continue
            drug = enrollment.drug
            group = groups.setdefault(
                drug.id, {"drug": drug, "count": 0, "total": Decimal("0.00")}
            )
            group["count"] += 1
            group["total"] += cost

        rows = [
            CostAnalysisRow(
                department_id=g["drug"].department_id,
                department_name=g["drug"].department_name,
                drug_id=g["drug"].id,
                drug_name=g["drug"].name,
                unit_price=g["drug"].price,
                patient_count=g["count"],
                total_annual_cost=g["total"],
                avg_cost_per_patient=safe_average(g["total"], g["count"]),
            )
            for g in groups.values()
        ]
        rows.sort(key=lambda r: (r.department_name, r.drug_name))

        return CostAnalysisReport(
            start_date=period_start,
            end_date=period_end,
            total_cost=sum((r.total_annual_cost for r in rows), Decimal("0.00")),
            rows=rows,
        )

    # ============= Quota Utilization =============
    async def quota_utilization(
        self, filters: ReportFilters
    ) -> List[QuotaUtilizationRow]:
        """Per-drug quota figures coloured with the report thresholds."""
        drugs = await self.drug_repo.list_drugs(filters.department_id)
        active = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(department_id=filters.department_id, active_only=True)
        )

        rows = []
        for drug in drugs:
            status = compute_quota_status(drug, active, REPORT_UTILIZATION_POLICY)
            rows.append(
                QuotaUtilizationRow(
                    drug_id=drug.id,
                    drug_name=drug.name,
                    department_id=drug.department_id,
                    department_name=drug.department_name,
                    quota_number=status.quota_number,
                    active_patients=status.active,
                    available_slots=status.available,
                    utilization_percentage=status.utilization_pct,
                    status=status.tier,
                    status_color=status.color,
                )
            )
        return rows

    # ============= Defaulters =============
    async def defaulters(
        self, filters: ReportFilters, as_of: date
    ) -> List[DefaulterRow]:
        enrollments = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(
                department_id=filters.department_id,
                active_only=True,
                start_date=filters.start_date,
                end_date=filters.end_date,
            )
        )

        rows = []
        for enrollment in self._usable(enrollments, "defaulters"):
            status = enrollment.compliance(as_of)
            if not status.is_potential_defaulter:
                continue
            rows.append(
                DefaulterRow(
                    enrollment_id=enrollment.id,
                    patient_id=enrollment.patient_id,
                    patient_name=enrollment.patient.name,
                    ic_number=enrollment.patient.ic_number,
                    drug_id=enrollment.drug_id,
                    drug_name=enrollment.drug.name,
                    department_id=enrollment.drug.department_id,
                    department_name=enrollment.drug.department_name,
                    prescription_start_date=enrollment.prescription_start_date,
                    prescription_end_date=enrollment.prescription_end_date,
                    latest_refill_date=enrollment.latest_refill_date,
                    days_since_refill=status.days_since_refill,
                    spub=enrollment.spub,
                )
            )
        # Longest overdue first
        rows.sort(key=lambda r: r.days_since_refill or 0, reverse=True)
        return rows

    # ============= Yearly Costs =============
    async def yearly_costs(
        self, filters: ReportFilters, as_of: date
    ) -> YearlyCostReport:
        """
        Cost summary for one calendar year.

        ``totalEnrollments`` counts every enrollment whose prescription
        window meets the year, active or not. Only active enrollments with a
        manual cost add to ``totalCost``; the average divides by the active
        count and is 0 when there are none.
        """
        year = filters.year or as_of.year
        period_start, period_end = calendar_year(year)
        enrollments = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(
                department_id=filters.department_id,
                start_date=period_start,
                end_date=period_end,
            )
        )

        total_cost = Decimal("0.00")
        active_count = 0
        cost_bearing = 0
        department_totals: Dict[str, DepartmentCostTotal] = OrderedDict()
        rows = []

        for enrollment in self._usable(enrollments, "yearly_costs"):
            cost = enrollment_period_cost(enrollment, period_start, period_end, as_of)
            department_name = enrollment.drug.department_name
            dept_total = department_totals.setdefault(
                department_name, DepartmentCostTotal(total=Decimal("0.00"), count=0)
            )
            if enrollment.is_active:
                active_count += 1
                dept_total.count += 1
            if cost is not None:
                cost_bearing += 1
                total_cost += cost
                dept_total.total += cost

            rows.append(
                YearlyCostRow(
                    enrollment_id=enrollment.id,
                    patient_name=enrollment.patient.name,
                    ic_number=enrollment.patient.ic_number,
                    drug_name=enrollment.drug.name,
                    department_name=department_name,
                    prescription_start_date=enrollment.prescription_start_date,
                    prescription_end_date=enrollment.prescription_end_date,
                    is_active=enrollment.is_active,
                    cost_per_day=enrollment.cost_per_day,
                    calculated_yearly_cost=cost,
                )
            )

        summary = YearlyCostSummary(
            total_cost=total_cost,
            total_enrollments=len(rows),
            active_enrollments=active_count,
            cost_bearing_enrollments=cost_bearing,
            average_cost_per_enrollment=safe_average(total_cost, active_count),
        )
        return YearlyCostReport(
            year=year,
            summary=summary,
            department_totals=dict(department_totals),
            enrollments=rows,
        )

    # ============= Export Rows =============
    async def build_report(
        self,
        report_type: Union[ReportType, str],
        filters: ReportFilters,
        as_of: date,
    ) -> List[Dict[str, Any]]:
        """
        Rows for the spreadsheet exporter, which formats them elsewhere.

        Raises:
            ValidationError: Unknown report type
        """
        try:
            report_type = ReportType(report_type)
        except ValueError:
            raise ValidationError(
                f"Unknown report type '{report_type}'", field="report_type"
            )

        if report_type is ReportType.COST_ANALYSIS:
            report = await self.cost_analysis(filters, as_of)
            rows = [r.model_dump(mode="json") for r in report.rows]
        elif report_type is ReportType.QUOTA_UTILIZATION:
            rows = [
                r.model_dump(mode="json") for r in await self.quota_utilization(filters)
            ]
        elif report_type is ReportType.DEFAULTERS:
            rows = [
                r.model_dump(mode="json")
                for r in await self.defaulters(filters, as_of)
            ]
        elif report_type is ReportType.YEARLY_COSTS:
            report = await self.yearly_costs(filters, as_of)
            rows = [r.model_dump(mode="json") for r in report.enrollments]
        else:
            enrollments = await self.enrollment_repo.list_enrollments(
                EnrollmentFilters(
                    department_id=filters.department_id,
                    start_date=filters.start_date,
                    end_date=filters.end_date,
                )
            )
            rows = [
                EnrollmentResponseSchema.from_enrollment(e, as_of).model_dump(mode="json")
                for e in self._usable(enrollments, "all_enrollments")
            ]

        self.log_info(
            {
                "event": "report_rows_built",
                "report_type": report_type.value,
                "row_count": len(rows),
            }
        )
        return rows

    # ============= Helpers =============
    def _usable(self, enrollments: List[Enrollment], report: str) -> List[Enrollment]:
        usable = []
        for enrollment in enrollments:
            if enrollment.is_orphaned():
                self.log_warning(
                    {
                        "event": "orphaned_enrollment_skipped",
                        "report": report,
                        "enrollment_id": str(enrollment.id),
                        "patient_id": str(enrollment.patient_id),
                        "drug_id": str(enrollment.drug_id),
                    }
                )
                continue
            usable.append(enrollment)
        return usable
