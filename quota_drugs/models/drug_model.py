import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from quota_drugs.db.base import Base
from quota_drugs.schemas.drug_schemas import CalculationMethod

if TYPE_CHECKING:
    from quota_drugs.models.department_model import Department
    from quota_drugs.models.enrollment_model import Enrollment


class Drug(Base):
    """
    A quota drug. ``quota_number`` caps how many enrollments may be active
    at once; the cap is advisory and over-enrollment is tolerated.
    """

    __tablename__ = "drugs"

    __table_args__ = (
        UniqueConstraint("department_id", "name", name="uq_drugs_department_name"),
        CheckConstraint("quota_number >= 0", name="ck_drugs_quota_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    department_id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quota_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Price of one priced unit; see calculation_method for the unit's length
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    calculation_method: Mapped[CalculationMethod] = mapped_column(
        SQLEnum(CalculationMethod),
        default=CalculationMethod.DAILY,
        nullable=False,
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    # Relationships
    department: Mapped["Department"] = relationship(
        "Department", back_populates="drugs", lazy="selectin"
    )
    enrollments: Mapped[List["Enrollment"]] = relationship(
        "Enrollment", back_populates="drug", cascade="all, delete-orphan"
    )

    @property
    def department_name(self) -> Optional[str]:
        return self.department.name if self.department else None

    def __repr__(self) -> str:
        return f"<Drug id={self.id} name={self.name} quota={self.quota_number}>"
