import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List
from sqlalchemy import TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from quota_drugs.db.base import Base

if TYPE_CHECKING:
    from quota_drugs.models.drug_model import Drug


class Department(Base):
    """Clinical department owning a set of quota drugs."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(150), unique=True, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Deleting a department removes its drugs and, through them, enrollments
    drugs: Mapped[List["Drug"]] = relationship(
        "Drug",
        back_populates="department",
        cascade="all, delete-orphan",
        order_by="Drug.name",
    )

    def __repr__(self) -> str:
        return f"<Department id={self.id} name={self.name}>"
