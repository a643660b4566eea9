from datetime import date
from typing import List, Optional
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, func, or_
from quota_drugs.core.filters import EnrollmentFilters
from quota_drugs.models.drug_model import Drug
from quota_drugs.models.enrollment_model import Enrollment
from quota_drugs.models.patient_model import Patient


class EnrollmentRepository:
    """Repository layer for enrollment data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============= Enrollment CRUD Operations =============
    async def create_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """
        Insert an enrollment.

        May raise ``IntegrityError`` from the active (patient, drug) index;
        callers own the rollback.
        """
        self.db.add(enrollment)
        await self.db.commit()
        return await self.get_enrollment_by_id(enrollment.id, refresh=True)

    async def get_enrollment_by_id(
        self, enrollment_id: uuid.UUID, refresh: bool = False
    ) -> Optional[Enrollment]:
        query = select(Enrollment).where(Enrollment.id == enrollment_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_active_enrollment(
        self,
        patient_id: uuid.UUID,
        drug_id: uuid.UUID,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Enrollment]:
        """Active enrollment for the (patient, drug) pair, if any."""
        query = select(Enrollment).where(
            Enrollment.patient_id == patient_id,
            Enrollment.drug_id == drug_id,
            Enrollment.is_active == True,
        )
        if exclude_id:
            query = query.where(Enrollment.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_enrollments(
        self, filters: Optional[EnrollmentFilters] = None
    ) -> List[Enrollment]:
        """
        List enrollments matching ``filters``, newest first.

        The date range keeps enrollments whose prescription window overlaps
        it; a missing start or end date leaves that side of the window open.
        """
        filters = filters or EnrollmentFilters()
        query = select(Enrollment)

        if filters.drug_id:
            query = query.where(Enrollment.drug_id == filters.drug_id)
        if filters.patient_id:
            query = query.where(Enrollment.patient_id == filters.patient_id)
        if filters.department_id:
            query = query.join(Drug, Enrollment.drug_id == Drug.id).where(
                Drug.department_id == filters.department_id
            )
        if filters.active_only:
            query = query.where(Enrollment.is_active == True)
        if filters.end_date:
            query = query.where(
                or_(
                    Enrollment.prescription_start_date.is_(None),
                    Enrollment.prescription_start_date <= filters.end_date,
                )
            )
        if filters.start_date:
            query = query.where(
                or_(
                    Enrollment.prescription_end_date.is_(None),
                    Enrollment.prescription_end_date >= filters.start_date,
                )
            )

        query = query.order_by(Enrollment.created_at.desc())

        result = await self.db.execute(query)
        return result.scalars().all()

    async def update_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Update enrollment; may raise ``IntegrityError`` like create."""
        self.db.add(enrollment)
        await self.db.commit()
        return await self.get_enrollment_by_id(enrollment.id, refresh=True)

    async def delete_enrollment(self, enrollment: Enrollment) -> None:
        await self.db.delete(enrollment)
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ============= Orphan Maintenance =============
    async def get_orphaned_enrollments(self) -> List[Enrollment]:
        """Enrollments whose patient or drug row no longer exists."""
        result = await self.db.execute(
            select(Enrollment)
            .outerjoin(Patient, Enrollment.patient_id == Patient.id)
            .outerjoin(Drug, Enrollment.drug_id == Drug.id)
            .where(or_(Patient.id.is_(None), Drug.id.is_(None)))
        )
        return result.scalars().all()

    async def delete_enrollments(self, enrollments: List[Enrollment]) -> int:
        for enrollment in enrollments:
            await self.db.delete(enrollment)
        await self.db.commit()
        return len(enrollments)

    # ============= Statistics =============
    async def count_active_enrollments(self) -> int:
        result = await self.db.execute(
            select(func.count(Enrollment.id)).where(Enrollment.is_active == True)
        )
        return result.scalar() or 0

    async def count_refills_between(self, start: date, end: date) -> int:
        """Enrollments whose latest refill falls within [start, end]."""
        result = await self.db.execute(
            select(func.count(Enrollment.id)).where(
                and_(
                    Enrollment.latest_refill_date >= start,
                    Enrollment.latest_refill_date <= end,
                )
            )
        )
        return result.scalar() or 0
