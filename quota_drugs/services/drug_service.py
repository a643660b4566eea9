from typing import List, Optional, Tuple
import uuid
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ConflictError, NotFoundError
from quota_drugs.core.filters import EnrollmentFilters
from quota_drugs.models.drug_model import Drug
from quota_drugs.repositories.department_repo import DepartmentRepository
from quota_drugs.repositories.drug_repo import DrugRepository
from quota_drugs.repositories.enrollment_repo import EnrollmentRepository
from quota_drugs.schemas.drug_schemas import DrugCreateSchema, DrugUpdateSchema
from quota_drugs.services.quota_calc import (
    LIST_UTILIZATION_POLICY,
    QuotaStatus,
    compute_quota_status,
)


class DrugService:
    """Service layer for drug business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = DrugRepository(self.db)
        self.department_repo = DepartmentRepository(self.db)
        self.enrollment_repo = EnrollmentRepository(self.db)

    # ============= Drug CRUD Services =============
    async def create_drug(self, drug_data: DrugCreateSchema) -> Drug:
        """Create a drug under an existing department."""
        await self._require_department(drug_data.department_id)
        await self._check_unique_name(drug_data.department_id, drug_data.name)

        drug = Drug(**drug_data.model_dump())
        return await self.repo.create_drug(drug)

    async def get_drug(self, drug_id: uuid.UUID) -> Drug:
        drug = await self.repo.get_drug_by_id(drug_id)
        if not drug:
            raise NotFoundError("Drug", drug_id)
        return drug

    async def list_drugs(
        self, department_id: Optional[uuid.UUID] = None
    ) -> List[Tuple[Drug, QuotaStatus]]:
        """
        List drugs with their live quota status.

        Active counts come from the current enrollment set on every call.
        """
        drugs = await self.repo.list_drugs(department_id)
        active = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(department_id=department_id, active_only=True)
        )
        return [
            (drug, compute_quota_status(drug, active, LIST_UTILIZATION_POLICY))
            for drug in drugs
        ]

    async def get_quota_status(self, drug_id: uuid.UUID) -> Tuple[Drug, QuotaStatus]:
        drug = await self.get_drug(drug_id)
        active = await self.enrollment_repo.list_enrollments(
            EnrollmentFilters(drug_id=drug_id, active_only=True)
        )
        return drug, compute_quota_status(drug, active, LIST_UTILIZATION_POLICY)

    async def update_drug(
        self, drug_id: uuid.UUID, update_data: DrugUpdateSchema
    ) -> Drug:
        drug = await self.get_drug(drug_id)

        update_dict = update_data.model_dump(exclude_unset=True)
        # Required columns cannot be cleared
        for field in ("name", "department_id", "quota_number", "calculation_method"):
            if field in update_dict and update_dict[field] is None:
                update_dict.pop(field)

        if "department_id" in update_dict:
            await self._require_department(update_dict["department_id"])

        new_department = update_dict.get("department_id", drug.department_id)
        new_name = update_dict.get("name", drug.name)
        if new_department != drug.department_id or new_name.lower() != drug.name.lower():
            await self._check_unique_name(new_department, new_name, exclude_id=drug_id)

        for field, value in update_dict.items():
            setattr(drug, field, value)

        return await self.repo.update_drug(drug)

    async def delete_drug(self, drug_id: uuid.UUID) -> bool:
        """Delete a drug; its enrollments are removed with it."""
        deleted = await self.repo.delete_drug(drug_id)
        if not deleted:
            raise NotFoundError("Drug", drug_id)
        return True

    # ============= Helpers =============
    async def _require_department(self, department_id: uuid.UUID) -> None:
        department = await self.department_repo.get_department_by_id(department_id)
        if not department:
            raise NotFoundError("Department", department_id, field="department_id")

    async def _check_unique_name(
        self,
        department_id: uuid.UUID,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        existing = await self.repo.get_drug_by_name(department_id, name)
        if existing and existing.id != exclude_id:
            raise ConflictError(
                f"Drug '{name}' already exists in this department", field="name"
            )
