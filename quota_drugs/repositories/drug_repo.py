from typing import List, Optional
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func
from quota_drugs.models.department_model import Department
from quota_drugs.models.drug_model import Drug


class DrugRepository:
    """Repository layer for drug data access."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============= Drug CRUD Operations =============
    async def create_drug(self, drug: Drug) -> Drug:
        """Create a new drug."""
        self.db.add(drug)
        await self.db.commit()
        return await self.get_drug_by_id(drug.id, refresh=True)

    async def get_drug_by_id(
        self, drug_id: uuid.UUID, refresh: bool = False
    ) -> Optional[Drug]:
        """Get drug by ID; ``refresh`` reloads a row already in the session."""
        query = select(Drug).where(Drug.id == drug_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_drug_by_name(
        self, department_id: uuid.UUID, name: str
    ) -> Optional[Drug]:
        """Get a drug by name within a department, ignoring case."""
        result = await self.db.execute(
            select(Drug).where(
                Drug.department_id == department_id,
                func.lower(Drug.name) == name.lower(),
            )
        )
        return result.scalars().first()

    async def list_drugs(
        self, department_id: Optional[uuid.UUID] = None
    ) -> List[Drug]:
        """
        List drugs ordered by department then name.

        Args:
            department_id: Restrict to one department; ``None`` lists all

        Returns:
            List of drugs with their department loaded
        """
        query = select(Drug).join(Department, Drug.department_id == Department.id)
        if department_id:
            query = query.where(Drug.department_id == department_id)
        query = query.order_by(Department.name.asc(), Drug.name.asc())

        result = await self.db.execute(query)
        return result.scalars().all()

    async def update_drug(self, drug: Drug) -> Drug:
        """Update drug."""
        self.db.add(drug)
        await self.db.commit()
        return await self.get_drug_by_id(drug.id, refresh=True)

    async def delete_drug(self, drug_id: uuid.UUID) -> bool:
        """Delete a drug together with its enrollments."""
        result = await self.db.execute(
            select(Drug)
            .options(selectinload(Drug.enrollments))
            .where(Drug.id == drug_id)
            .execution_options(populate_existing=True)
        )
        drug = result.scalars().first()
        if drug is None:
            return False
        await self.db.delete(drug)
        await self.db.commit()
        return True

    async def count_drugs(self) -> int:
        result = await self.db.execute(select(func.count(Drug.id)))
        return result.scalar() or 0
