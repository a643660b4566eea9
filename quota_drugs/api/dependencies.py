from datetime import date
from typing import AsyncGenerator, Optional
from fastapi import Query
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.filters import parse_iso_date
from quota_drugs.db.session import AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def get_as_of(
    as_of: Optional[str] = Query(
        None, description="Evaluate refill status and open-ended costs as of this day (YYYY-MM-DD)"
    ),
) -> date:
    """
    The day every compliance and cost figure in a request is computed for.

    This is the only place the system clock is read.
    """
    return parse_iso_date(as_of, "as_of") or date.today()
