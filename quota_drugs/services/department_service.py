from typing import List, Tuple
import uuid
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ConflictError, NotFoundError
from quota_drugs.core.filters import EnrollmentFilters
from quota_drugs.models.department_model import Department
from quota_drugs.repositories.department_repo import DepartmentRepository
from quota_drugs.repositories.drug_repo import DrugRepository
from quota_drugs.repositories.enrollment_repo import EnrollmentRepository
from quota_drugs.schemas.department_schemas import (
    DepartmentCreateSchema,
    DepartmentSummarySchema,
    DepartmentUpdateSchema,
)
from quota_drugs.schemas.drug_schemas import QuotaStatusSchema
from quota_drugs.services.quota_calc import (
    REPORT_UTILIZATION_POLICY,
    combine_quota_statuses,
    compute_quota_status,
)


class DepartmentService:
    """Service layer for department business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = DepartmentRepository(self.db)

    async def create_department(
        self, department_data: DepartmentCreateSchema
    ) -> Department:
        existing = await self.repo.get_department_by_name(department_data.name)
        if existing:
            raise ConflictError(
                f"Department '{department_data.name}' already exists", field="name"
            )
        department = Department(**department_data.model_dump())
        return await self.repo.create_department(department)

    async def get_department(self, department_id: uuid.UUID) -> Department:
        department = await self.repo.get_department_by_id(department_id)
        if not department:
            raise NotFoundError("Department", department_id)
        return department

    async def list_departments(self) -> List[Tuple[Department, int, int]]:
        """Departments with their drug count and active enrollment count."""
        return await self.repo.list_departments_with_stats()

    async def update_department(
        self, department_id: uuid.UUID, update_data: DepartmentUpdateSchema
    ) -> Department:
        department = await self.get_department(department_id)

        update_dict = update_data.model_dump(exclude_unset=True, exclude_none=True)
        new_name = update_dict.get("name")
        if new_name and new_name.lower() != department.name.lower():
            existing = await self.repo.get_department_by_name(new_name)
            if existing and existing.id != department_id:
                raise ConflictError(
                    f"Department '{new_name}' already exists", field="name"
                )

        for field, value in update_dict.items():
            setattr(department, field, value)

        return await self.repo.update_department(department)

    async def delete_department(self, department_id: uuid.UUID) -> bool:
        """Delete a department; its drugs and their enrollments go with it."""
        deleted = await self.repo.delete_department(department_id)
        if not deleted:
            raise NotFoundError("Department", department_id)
        return True

    async def get_summary(self, department_id: uuid.UUID) -> DepartmentSummarySchema:
        """
        Quota rollup of one department.

        Totals are coloured with the report policy, the per-drug rows with
        the same policy so the overview reads consistently.
        """
        department = await self.get_department(department_id)
        drugs = await DrugRepository(self.db).list_drugs(department_id)
        active = await EnrollmentRepository(self.db).list_enrollments(
            EnrollmentFilters(department_id=department_id, active_only=True)
        )

        drug_rows = []
        statuses = []
        for drug in drugs:
            status = compute_quota_status(drug, active, REPORT_UTILIZATION_POLICY)
            statuses.append(status)
            drug_rows.append(QuotaStatusSchema.from_status(drug, status))

        total = combine_quota_statuses(statuses, REPORT_UTILIZATION_POLICY)
        return DepartmentSummarySchema(
            department_id=department.id,
            department_name=department.name,
            drug_count=len(drugs),
            total_quota=total.quota_number,
            active_patients=total.active,
            available_slots=total.available,
            utilization_percentage=total.utilization_pct,
            utilization_tier=total.tier,
            utilization_color=total.color,
            drugs=drug_rows,
        )
