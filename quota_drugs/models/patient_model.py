import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List
from sqlalchemy import TIMESTAMP, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from quota_drugs.db.base import Base

if TYPE_CHECKING:
    from quota_drugs.models.enrollment_model import Enrollment


class Patient(Base):

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    # Stored upper-cased
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    # IC number, or a passport number for non-citizens
    ic_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
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

    enrollments: Mapped[List["Enrollment"]] = relationship(
        "Enrollment", back_populates="patient", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Patient id={self.id} ic_number={self.ic_number}>"
