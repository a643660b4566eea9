from typing import Dict, List, Optional, Tuple
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func
from quota_drugs.models.department_model import Department
from quota_drugs.models.drug_model import Drug
from quota_drugs.models.enrollment_model import Enrollment


class DepartmentRepository:
    """Repository layer for department data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============= Department CRUD Operations =============
    async def create_department(self, department: Department) -> Department:
        """Create a new department."""
        self.db.add(department)
        await self.db.commit()
        return await self.get_department_by_id(department.id, refresh=True)

    async def get_department_by_id(
        self, department_id: uuid.UUID, refresh: bool = False
    ) -> Optional[Department]:
        query = select(Department).where(Department.id == department_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_department_by_name(self, name: str) -> Optional[Department]:
        """Case-insensitive lookup used for the unique name check."""
        result = await self.db.execute(
            select(Department).where(func.lower(Department.name) == name.lower())
        )
        return result.scalars().first()

    async def list_departments(self) -> List[Department]:
        result = await self.db.execute(
            select(Department).order_by(Department.name.asc())
        )
        return result.scalars().all()

    async def update_department(self, department: Department) -> Department:
        """Update department."""
        self.db.add(department)
        await self.db.commit()
        return await self.get_department_by_id(department.id, refresh=True)

    async def delete_department(self, department_id: uuid.UUID) -> bool:
        """
        Delete a department with its drugs and their enrollments.

        The drug and enrollment collections are reloaded up front so the ORM
        cascade removes every current child inside the same flush.
        """
        result = await self.db.execute(
            select(Department)
            .options(selectinload(Department.drugs).selectinload(Drug.enrollments))
            .where(Department.id == department_id)
            .execution_options(populate_existing=True)
        )
        department = result.scalars().first()
        if department is None:
            return False
        await self.db.delete(department)
        await self.db.commit()
        return True

    # ============= Statistics =============
    async def get_drug_counts(self) -> Dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(Drug.department_id, func.count(Drug.id)).group_by(
                Drug.department_id
            )
        )
        return {department_id: count for department_id, count in result.all()}

    async def get_active_enrollment_counts(self) -> Dict[uuid.UUID, int]:
        """Active enrollments across each department's drugs."""
        result = await self.db.execute(
            select(Drug.department_id, func.count(Enrollment.id))
            .join(Enrollment, Enrollment.drug_id == Drug.id)
            .where(Enrollment.is_active == True)
            .group_by(Drug.department_id)
        )
        return {department_id: count for department_id, count in result.all()}

    async def list_departments_with_stats(
        self,
    ) -> List[Tuple[Department, int, int]]:
        """Return ``(department, drug_count, active_enrollments)`` rows."""
        departments = await self.list_departments()
        drug_counts = await self.get_drug_counts()
        active_counts = await self.get_active_enrollment_counts()
        return [
            (d, drug_counts.get(d.id, 0), active_counts.get(d.id, 0))
            for d in departments
        ]

    async def count_departments(self) -> int:
        result = await self.db.execute(select(func.count(Department.id)))
        return result.scalar() or 0
