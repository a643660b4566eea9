from typing import List, Optional
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func
from quota_drugs.models.patient_model import Patient


class PatientRepository:
    """Repository layer for patient data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============= Patient CRUD Operations =============
    async def create_patient(self, patient: Patient) -> Patient:
        """Create a new patient."""
        self.db.add(patient)
        await self.db.commit()
        return await self.get_patient_by_id(patient.id, refresh=True)

    async def get_patient_by_id(
        self, patient_id: uuid.UUID, refresh: bool = False
    ) -> Optional[Patient]:
        query = select(Patient).where(Patient.id == patient_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_patient_by_ic_number(self, ic_number: str) -> Optional[Patient]:
        result = await self.db.execute(
            select(Patient).where(Patient.ic_number == ic_number)
        )
        return result.scalars().first()

    async def list_patients(self, search_term: Optional[str] = None) -> List[Patient]:
        """List patients, optionally matching a name or IC number fragment."""
        query = select(Patient)

        if search_term and search_term.strip():
            search_pattern = f"%{search_term.strip().lower()}%"
            query = query.where(
                (func.lower(Patient.name).like(search_pattern))
                | (func.lower(Patient.ic_number).like(search_pattern))
            )

        query = query.order_by(Patient.name.asc())

        result = await self.db.execute(query)
        return result.scalars().all()

    async def update_patient(self, patient: Patient) -> Patient:
        """Update patient."""
        self.db.add(patient)
        await self.db.commit()
        return await self.get_patient_by_id(patient.id, refresh=True)

    async def delete_patient(self, patient_id: uuid.UUID) -> bool:
        """Delete a patient together with their enrollments."""
        result = await self.db.execute(
            select(Patient)
            .options(selectinload(Patient.enrollments))
            .where(Patient.id == patient_id)
            .execution_options(populate_existing=True)
        )
        patient = result.scalars().first()
        if patient is None:
            return False
        await self.db.delete(patient)
        await self.db.commit()
        return True

    async def count_patients(self) -> int:
        result = await self.db.execute(select(func.count(Patient.id)))
        return result.scalar() or 0
