from typing import List, Optional
import uuid
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ConflictError, NotFoundError
from quota_drugs.core.filters import EnrollmentFilters
from quota_drugs.models.enrollment_model import Enrollment
from quota_drugs.models.patient_model import Patient
from quota_drugs.repositories.enrollment_repo import EnrollmentRepository
from quota_drugs.repositories.patient_repo import PatientRepository
from quota_drugs.schemas.patient_schemas import (
    PatientCreateSchema,
    PatientUpdateSchema,
)


class PatientService:
    """Service layer for patient business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = PatientRepository(self.db)

    async def create_patient(self, patient_data: PatientCreateSchema) -> Patient:
        """Register a patient; the IC number must not be in use."""
        await self._check_unique_ic(patient_data.ic_number)
        patient = Patient(**patient_data.model_dump())
        return await self.repo.create_patient(patient)

    async def get_patient(self, patient_id: uuid.UUID) -> Patient:
        patient = await self.repo.get_patient_by_id(patient_id)
        if not patient:
            raise NotFoundError("Patient", patient_id)
        return patient

    async def list_patients(self, search: Optional[str] = None) -> List[Patient]:
        return await self.repo.list_patients(search)

    async def update_patient(
        self, patient_id: uuid.UUID, update_data: PatientUpdateSchema
    ) -> Patient:
        patient = await self.get_patient(patient_id)

        update_dict = update_data.model_dump(exclude_unset=True, exclude_none=True)
        new_ic = update_dict.get("ic_number")
        if new_ic and new_ic != patient.ic_number:
            await self._check_unique_ic(new_ic, exclude_id=patient_id)

        for field, value in update_dict.items():
            setattr(patient, field, value)

        return await self.repo.update_patient(patient)

    async def delete_patient(self, patient_id: uuid.UUID) -> bool:
        """Delete a patient; their enrollments are removed with them."""
        deleted = await self.repo.delete_patient(patient_id)
        if not deleted:
            raise NotFoundError("Patient", patient_id)
        return True

    async def list_patient_enrollments(self, patient_id: uuid.UUID) -> List[Enrollment]:
        await self.get_patient(patient_id)
        return await EnrollmentRepository(self.db).list_enrollments(
            EnrollmentFilters(patient_id=patient_id)
        )

    async def _check_unique_ic(
        self, ic_number: str, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        existing = await self.repo.get_patient_by_ic_number(ic_number)
        if existing and existing.id != exclude_id:
            raise ConflictError(
                f"A patient with IC number '{ic_number}' already exists",
                field="ic_number",
            )
