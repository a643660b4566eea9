import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from quota_drugs.db.base import Base
from quota_drugs.services.compliance import ComplianceStatus, classify

if TYPE_CHECKING:
    from quota_drugs.models.drug_model import Drug
    from quota_drugs.models.patient_model import Patient


ACTIVE_PAIR_INDEX = "uq_enrollments_active_patient_drug"


class Enrollment(Base):
    """
    Enrollment of a patient on a quota drug.

    Only one enrollment per (patient, drug) may be active at a time; the
    partial unique index below is the authority for that rule. Retired
    enrollments are kept with ``is_active = False`` so that their cost
    history stays available to the yearly reports.
    """

    __tablename__ = "enrollments"

    __table_args__ = (
        Index(
            ACTIVE_PAIR_INDEX,
            "patient_id",
            "drug_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint(
            "prescription_end_date IS NULL OR prescription_start_date IS NULL "
            "OR prescription_end_date >= prescription_start_date",
            name="ck_enrollments_end_after_start",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    drug_id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("drugs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    dose_per_day: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Days between start and end date, kept in step with prescription_end_date
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    prescription_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    prescription_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    latest_refill_date: Mapped[Optional[date]] = mapped_column(
        Date, nullable=True, index=True
    )

    # Supply at another facility; exempt from defaulter detection
    spub: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, index=True
    )
    # NULL means no manual cost was entered, which is not the same as zero
    cost_per_day: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
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
    patient: Mapped["Patient"] = relationship(
        "Patient", back_populates="enrollments", lazy="selectin"
    )
    drug: Mapped["Drug"] = relationship(
        "Drug", back_populates="enrollments", lazy="selectin"
    )

    # Business Logic Methods
    def compliance(self, as_of: date) -> ComplianceStatus:
        """Refill compliance as of the given day; never stored."""
        return classify(self, as_of)

    def is_orphaned(self) -> bool:
        """True when the patient, drug or drug's department row is missing."""
        return (
            self.patient is None
            or self.drug is None
            or self.drug.department is None
        )

    def append_remark(self, remark: str) -> None:
        self.remarks = f"{self.remarks}\n{remark}" if self.remarks else remark

    def __repr__(self) -> str:
        return (
            f"<Enrollment id={self.id} patient={self.patient_id} "
            f"drug={self.drug_id} active={self.is_active}>"
        )
