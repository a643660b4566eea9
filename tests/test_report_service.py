"""
Report Service Tests
"""
import logging
import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ValidationError
from quota_drugs.core.filters import ReportFilters
from quota_drugs.models import Department, Drug, Patient
from quota_drugs.services.report_service import ReportService, report_period


AS_OF = date(2026, 1, 15)


@pytest.fixture
async def second_drug(db_session: AsyncSession, other_department: Department) -> Drug:
    drug = Drug(name="Tacrolimus 1mg", department_id=other_department.id, quota_number=10)
    db_session.add(drug)
    await db_session.commit()
    await db_session.refresh(drug)
    return drug


@pytest.mark.unit
class TestReportPeriod:
    def test_defaults_to_as_of_year(self):
        assert report_period(ReportFilters(), AS_OF) == (date(2026, 1, 1), date(2026, 12, 31))

    def test_year_filter(self):
        assert report_period(ReportFilters(year=2025), AS_OF) == (
            date(2025, 1, 1),
            date(2025, 12, 31),
        )

    def test_explicit_bounds_win(self):
        filters = ReportFilters(start_date=date(2025, 3, 1), end_date=date(2025, 3, 31))

        assert report_period(filters, AS_OF) == (date(2025, 3, 1), date(2025, 3, 31))

    def test_end_date_only_uses_its_own_year(self):
        filters = ReportFilters(end_date=date(2025, 6, 30))

        assert report_period(filters, AS_OF) == (date(2025, 1, 1), date(2025, 6, 30))

    def test_start_date_only_uses_its_own_year(self):
        filters = ReportFilters(start_date=date(2027, 2, 1))

        assert report_period(filters, AS_OF) == (date(2027, 2, 1), date(2027, 12, 31))

    def test_start_after_end(self):
        with pytest.raises(ValidationError):
            ReportFilters(start_date=date(2025, 6, 1), end_date=date(2025, 1, 1))


@pytest.mark.asyncio
@pytest.mark.unit
class TestYearlyCosts:
    async def test_year_summary(
        self,
        db_session: AsyncSession,
        drug: Drug,
        make_patient,
        make_enrollment,
    ):
        for _ in range(2):
            await make_enrollment(
                await make_patient(),
                drug,
                prescription_start_date=date(2025, 1, 1),
                prescription_end_date=date(2025, 12, 31),
                cost_per_day=Decimal("2.00"),
            )
        await make_enrollment(
            await make_patient(),
            drug,
            prescription_start_date=date(2025, 1, 1),
            prescription_end_date=date(2025, 12, 31),
        )
        service = ReportService(db_session)

        report = await service.yearly_costs(ReportFilters(year=2025), AS_OF)

        assert report.year == 2025
        assert report.summary.total_cost == Decimal("1460.00")
        assert report.summary.total_enrollments == 3
        assert report.summary.active_enrollments == 3
        assert report.summary.cost_bearing_enrollments == 2
        assert report.summary.average_cost_per_enrollment == Decimal("486.67")
        cardiology = report.department_totals["Cardiology"]
        assert cardiology.total == Decimal("1460.00")
        assert cardiology.count == 3
        costs = sorted(
            (row.calculated_yearly_cost for row in report.enrollments),
            key=lambda c: (c is None, c),
        )
        assert costs == [Decimal("730.00"), Decimal("730.00"), None]

    async def test_inactive_enrollment_listed_but_not_costed(
        self, db_session: AsyncSession, drug: Drug, patient: Patient, make_enrollment
    ):
        await make_enrollment(
            patient,
            drug,
            is_active=False,
            prescription_end_date=date(2025, 6, 30),
            cost_per_day=Decimal("5.00"),
        )
        service = ReportService(db_session)

        report = await service.yearly_costs(ReportFilters(year=2025), AS_OF)

        assert report.summary.total_enrollments == 1
        assert report.summary.active_enrollments == 0
        assert report.summary.total_cost == Decimal("0.00")
        assert report.summary.average_cost_per_enrollment == Decimal("0.00")
        assert report.enrollments[0].calculated_yearly_cost is None

    async def test_open_ended_runs_to_as_of(
        self, db_session: AsyncSession, drug: Drug, patient: Patient, make_enrollment
    ):
        await make_enrollment(
            patient,
            drug,
            prescription_start_date=date(2026, 1, 1),
            cost_per_day=Decimal("1.50"),
        )
        service = ReportService(db_session)

        report = await service.yearly_costs(ReportFilters(), AS_OF)

        assert report.year == 2026
        # 1 Jan to 15 Jan inclusive
        assert report.summary.total_cost == Decimal("22.50")

    async def test_department_filter(
        self,
        db_session: AsyncSession,
        drug: Drug,
        second_drug: Drug,
        make_patient,
        make_enrollment,
    ):
        await make_enrollment(await make_patient(), drug, cost_per_day=Decimal("1.00"))
        await make_enrollment(await make_patient(), second_drug, cost_per_day=Decimal("1.00"))
        service = ReportService(db_session)

        report = await service.yearly_costs(
            ReportFilters(department_id=second_drug.department_id, year=2025), AS_OF
        )

        assert list(report.department_totals) == ["Nephrology"]
        assert report.summary.total_enrollments == 1

    async def test_camel_case_keys(
        self, db_session: AsyncSession, drug: Drug, patient: Patient, make_enrollment
    ):
        await make_enrollment(patient, drug, cost_per_day=Decimal("2.00"))
        service = ReportService(db_session)

        report = await service.yearly_costs(ReportFilters(year=2025), AS_OF)
        payload = report.model_dump(mode="json", by_alias=True)

        assert set(payload["summary"]) == {
            "totalCost",
            "totalEnrollments",
            "activeEnrollments",
            "costBearingEnrollments",
            "averageCostPerEnrollment",
        }
        assert "departmentTotals" in payload


@pytest.mark.asyncio
@pytest.mark.unit
class TestCostAnalysis:
    async def test_groups_by_drug(
        self,
        db_session: AsyncSession,
        drug: Drug,
        second_drug: Drug,
        make_patient,
        make_enrollment,
    ):
        window = {
            "prescription_start_date": date(2025, 1, 1),
            "prescription_end_date": date(2025, 1, 10),
        }
        await make_enrollment(await make_patient(), drug, cost_per_day=Decimal("3.00"), **window)
        await make_enrollment(await make_patient(), drug, cost_per_day=Decimal("1.00"), **window)
        await make_enrollment(await make_patient(), drug, **window)
        # No enrollment with a cost, so no row
        await make_enrollment(await make_patient(), second_drug, **window)
        service = ReportService(db_session)

        report = await service.cost_analysis(ReportFilters(year=2025), AS_OF)

        assert len(report.rows) == 1
        row = report.rows[0]
        assert row.drug_id == drug.id
        assert row.patient_count == 2
        assert row.total_annual_cost == Decimal("40.00")
        assert row.avg_cost_per_patient == Decimal("20.00")
        assert report.total_cost == Decimal("40.00")

    async def test_inactive_enrollments_ignored(
        self, db_session: AsyncSession, drug: Drug, patient: Patient, make_enrollment
    ):
        await make_enrollment(patient, drug, is_active=False, cost_per_day=Decimal("3.00"))
        service = ReportService(db_session)

        report = await service.cost_analysis(ReportFilters(year=2025), AS_OF)

        assert report.rows == []
        assert report.total_cost == Decimal("0.00")


@pytest.mark.asyncio
@pytest.mark.unit
class TestDefaultersAndUtilization:
    async def test_defaulters_sorted_longest_first(
        self,
        db_session: AsyncSession,
        drug: Drug,
        make_patient,
        make_enrollment,
    ):
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2025, 7, 1))
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2025, 3, 1))
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2025, 12, 20))
        await make_enrollment(
            await make_patient(), drug, latest_refill_date=date(2025, 1, 1), spub=True
        )
        await make_enrollment(
            await make_patient(), drug, latest_refill_date=date(2025, 1, 1), is_active=False
        )
        service = ReportService(db_session)

        rows = await service.defaulters(ReportFilters(), AS_OF)

        assert [r.latest_refill_date for r in rows] == [date(2025, 3, 1), date(2025, 7, 1)]
        assert rows[0].days_since_refill == 320

    async def test_quota_utilization_uses_report_thresholds(
        self,
        db_session: AsyncSession,
        department: Department,
        make_patient,
        make_enrollment,
    ):
        drug = Drug(name="Evolocumab", department_id=department.id, quota_number=5)
        db_session.add(drug)
        await db_session.commit()
        for _ in range(4):
            await make_enrollment(await make_patient(), drug)
        service = ReportService(db_session)

        rows = await service.quota_utilization(ReportFilters())

        assert len(rows) == 1
        # 80 per cent is HIGH for reports, against 90/75
        assert rows[0].utilization_percentage == 80
        assert rows[0].status == "HIGH"
        assert rows[0].status_color == "orange"
        assert rows[0].available_slots == 1


@pytest.mark.asyncio
@pytest.mark.unit
class TestDashboardAndExport:
    async def test_dashboard_counts(
        self,
        db_session: AsyncSession,
        department: Department,
        other_department: Department,
        drug: Drug,
        make_patient,
        make_enrollment,
    ):
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2026, 1, 2))
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2025, 5, 1))
        await make_enrollment(await make_patient(), drug, is_active=False)
        service = ReportService(db_session)

        overview = await service.dashboard(AS_OF)

        assert overview.total_departments == 2
        assert overview.total_drugs == 1
        assert overview.total_patients == 3
        assert overview.active_enrollments == 2
        assert overview.potential_defaulters == 1
        assert overview.recent_refills == 1

    async def test_dashboard_skips_orphaned_enrollments(
        self,
        db_session: AsyncSession,
        drug: Drug,
        patient: Patient,
        make_patient,
        make_enrollment,
    ):
        await make_enrollment(patient, drug, latest_refill_date=date(2025, 3, 1))
        await make_enrollment(await make_patient(), drug, latest_refill_date=date(2026, 1, 2))
        await db_session.execute(delete(Patient).where(Patient.id == patient.id))
        await db_session.commit()
        db_session.expunge_all()
        service = ReportService(db_session)

        overview = await service.dashboard(AS_OF)

        assert overview.active_enrollments == 1
        assert overview.potential_defaulters == 0

    async def test_unknown_report_type(self, db_session: AsyncSession):
        service = ReportService(db_session)

        with pytest.raises(ValidationError) as exc_info:
            await service.build_report("monthly_magic", ReportFilters(), AS_OF)
        assert exc_info.value.field == "report_type"

    async def test_export_all_enrollments(
        self, db_session: AsyncSession, drug: Drug, patient: Patient, make_enrollment
    ):
        await make_enrollment(patient, drug, latest_refill_date=date(2026, 1, 2))
        service = ReportService(db_session)

        rows = await service.build_report("all_enrollments", ReportFilters(), AS_OF)

        assert len(rows) == 1
        assert rows[0]["patient_name"] == "SITI AMINAH"
        assert rows[0]["days_since_refill"] == 13

    async def test_orphaned_enrollment_skipped_with_warning(
        self,
        db_session: AsyncSession,
        drug: Drug,
        patient: Patient,
        make_patient,
        make_enrollment,
        caplog,
    ):
        await make_enrollment(patient, drug, cost_per_day=Decimal("1.00"))
        await make_enrollment(await make_patient(), drug, cost_per_day=Decimal("1.00"))
        await db_session.execute(delete(Patient).where(Patient.id == patient.id))
        await db_session.commit()
        db_session.expunge_all()
        service = ReportService(db_session)

        with caplog.at_level(logging.WARNING, logger="quota_drugs"):
            report = await service.yearly_costs(ReportFilters(year=2025), AS_OF)

        assert report.summary.total_enrollments == 1
        assert report.summary.total_cost == Decimal("365.00")
        assert "orphaned_enrollment_skipped" in caplog.text
