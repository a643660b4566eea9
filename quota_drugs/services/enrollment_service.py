from dataclasses import replace
from datetime import date
from typing import List, Optional
import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.core.exceptions import ConflictError, NotFoundError, ValidationError
from quota_drugs.core.filters import EnrollmentFilters
from quota_drugs.core.utils import LoggerMixin
from quota_drugs.models.drug_model import Drug
from quota_drugs.models.enrollment_model import ACTIVE_PAIR_INDEX, Enrollment
from quota_drugs.repositories.drug_repo import DrugRepository
from quota_drugs.repositories.enrollment_repo import EnrollmentRepository
from quota_drugs.repositories.patient_repo import PatientRepository
from quota_drugs.schemas.enrollment_schemas import (
    EnrollmentCreateSchema,
    EnrollmentUpdateSchema,
)
from quota_drugs.services.cost_calc import normalize_optional_cost
from quota_drugs.services.prescription_schedule import reconcile_schedule
from quota_drugs.services.quota_calc import compute_quota_status

DUPLICATE_ACTIVE_MESSAGE = "Patient is already enrolled in this drug"

# Fragments of the driver message when the active (patient, drug) index fires
_ACTIVE_PAIR_MARKERS = (
    ACTIVE_PAIR_INDEX,
    "enrollments.patient_id, enrollments.drug_id",
)


def _is_active_pair_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in _ACTIVE_PAIR_MARKERS)


class EnrollmentService(LoggerMixin):
    """
    Enrollment writes and reads.

    At most one enrollment per (patient, drug) may be active. The check made
    here only produces a friendly message early; the partial unique index on
    the table is what actually rejects a concurrent duplicate, and its
    violation is reported as the same ConflictError.
    """

    def __init__(self, db: AsyncSession):
        super().__init__()
        self.db = db
        self.repo = EnrollmentRepository(self.db)
        self.drug_repo = DrugRepository(self.db)
        self.patient_repo = PatientRepository(self.db)

    # ============= Enrollment CRUD Services =============
    async def create_enrollment(
        self, enrollment_data: EnrollmentCreateSchema, as_of: date
    ) -> Enrollment:
        """
        Enroll a patient on a drug.

        Args:
            enrollment_data: Validated request body
            as_of: Day used when no prescription start date is given

        Raises:
            NotFoundError: Unknown patient or drug
            ValidationError: Bad cost expression or prescription dates
            ConflictError: An active enrollment for the pair already exists
        """
        await self._require_patient(enrollment_data.patient_id)
        drug = await self._require_drug(enrollment_data.drug_id)

        cost_per_day = normalize_optional_cost(enrollment_data.cost_per_day)
        start = enrollment_data.prescription_start_date or as_of
        end, duration = reconcile_schedule(
            start,
            enrollment_data.prescription_end_date,
            enrollment_data.duration,
            end_date_edited=enrollment_data.prescription_end_date is not None,
        )

        if enrollment_data.is_active:
            await self._check_no_active_duplicate(
                enrollment_data.patient_id, enrollment_data.drug_id
            )
            await self._warn_if_over_quota(drug, enrollment_data.patient_id)

        enrollment = Enrollment(
            patient_id=enrollment_data.patient_id,
            drug_id=enrollment_data.drug_id,
            dose_per_day=enrollment_data.dose_per_day,
            duration=duration,
            prescription_start_date=start,
            prescription_end_date=end,
            latest_refill_date=enrollment_data.latest_refill_date,
            spub=enrollment_data.spub,
            is_active=enrollment_data.is_active,
            cost_per_day=cost_per_day,
            remarks=enrollment_data.remarks,
        )

        try:
            return await self.repo.create_enrollment(enrollment)
        except IntegrityError as e:
            await self._raise_for_integrity_error(e)

    async def get_enrollment(self, enrollment_id: uuid.UUID) -> Enrollment:
        enrollment = await self.repo.get_enrollment_by_id(enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment", enrollment_id)
        return enrollment

    async def list_enrollments(
        self, filters: Optional[EnrollmentFilters] = None
    ) -> List[Enrollment]:
        return await self.repo.list_enrollments(filters)

    async def update_enrollment(
        self, enrollment_id: uuid.UUID, update_data: EnrollmentUpdateSchema
    ) -> Enrollment:
        """
        Apply the fields present in ``update_data``.

        Editing ``prescription_end_date`` recomputes ``duration``; editing
        ``duration`` or the start date recomputes the end date.
        """
        enrollment = await self.get_enrollment(enrollment_id)
        update_dict = update_data.model_dump(exclude_unset=True)

        # Required columns cannot be cleared
        for field in ("patient_id", "drug_id", "spub", "is_active"):
            if field in update_dict and update_dict[field] is None:
                update_dict.pop(field)

        if "cost_per_day" in update_dict:
            update_dict["cost_per_day"] = normalize_optional_cost(
                update_dict["cost_per_day"]
            )

        schedule_fields = {"prescription_start_date", "prescription_end_date", "duration"}
        if schedule_fields & update_dict.keys():
            end_date_edited = "prescription_end_date" in update_dict
            if "duration" in update_dict:
                duration = update_dict["duration"]
            elif end_date_edited:
                duration = None
            else:
                duration = enrollment.duration
            start = update_dict.get(
                "prescription_start_date", enrollment.prescription_start_date
            )
            end, duration = reconcile_schedule(
                start,
                update_dict.get("prescription_end_date", enrollment.prescription_end_date),
                duration,
                end_date_edited=end_date_edited,
            )
            update_dict["prescription_start_date"] = start
            update_dict["prescription_end_date"] = end
            update_dict["duration"] = duration

        patient_id = update_dict.get("patient_id", enrollment.patient_id)
        drug_id = update_dict.get("drug_id", enrollment.drug_id)
        if patient_id != enrollment.patient_id:
            await self._require_patient(patient_id)
        drug = enrollment.drug
        if drug_id != enrollment.drug_id or drug is None:
            drug = await self._require_drug(drug_id)

        will_be_active = update_dict.get("is_active", enrollment.is_active)
        becomes_active_pair = will_be_active and (
            not enrollment.is_active
            or patient_id != enrollment.patient_id
            or drug_id != enrollment.drug_id
        )
        # Checks run before any attribute changes so no autoflush hits the index
        if becomes_active_pair:
            await self._check_no_active_duplicate(
                patient_id, drug_id, exclude_id=enrollment_id
            )
            await self._warn_if_over_quota(drug, patient_id)

        for field, value in update_dict.items():
            setattr(enrollment, field, value)

        try:
            return await self.repo.update_enrollment(enrollment)
        except IntegrityError as e:
            await self._raise_for_integrity_error(e)

    async def patch_refill_date(
        self, enrollment_id: uuid.UUID, refill_date: date
    ) -> Enrollment:
        enrollment = await self.get_enrollment(enrollment_id)
        enrollment.latest_refill_date = refill_date
        return await self.repo.update_enrollment(enrollment)

    async def deactivate_enrollment(
        self, enrollment_id: uuid.UUID, remarks: Optional[str] = None
    ) -> Enrollment:
        """Retire an enrollment; it stays on record for cost history."""
        enrollment = await self.get_enrollment(enrollment_id)
        enrollment.is_active = False
        if remarks and remarks.strip():
            enrollment.append_remark(remarks.strip())

        enrollment = await self.repo.update_enrollment(enrollment)
        self.log_audit_event(
            {
                "event": "enrollment_deactivated",
                "enrollment_id": str(enrollment.id),
                "patient_id": str(enrollment.patient_id),
                "drug_id": str(enrollment.drug_id),
            }
        )
        return enrollment

    async def delete_enrollment(self, enrollment_id: uuid.UUID) -> bool:
        enrollment = await self.get_enrollment(enrollment_id)
        await self.repo.delete_enrollment(enrollment)
        self.log_audit_event(
            {
                "event": "enrollment_deleted",
                "enrollment_id": str(enrollment_id),
                "patient_id": str(enrollment.patient_id),
                "drug_id": str(enrollment.drug_id),
            }
        )
        return True

    # ============= Defaulter Services =============
    async def potential_defaulters(
        self, as_of: date, filters: Optional[EnrollmentFilters] = None
    ) -> List[Enrollment]:
        """Active, non-SPUB enrollments last refilled over 180 days ago."""
        filters = replace(filters or EnrollmentFilters(), active_only=True)
        enrollments = await self.repo.list_enrollments(filters)
        return [
            e
            for e in enrollments
            if not e.is_orphaned() and e.compliance(as_of).is_potential_defaulter
        ]

    async def move_to_defaulter(
        self, enrollment_id: uuid.UUID, as_of: date, reason: Optional[str] = None
    ) -> Enrollment:
        """
        Deactivate a potential defaulter and record why on its remarks.

        Raises:
            ValidationError: The enrollment is not currently a potential
                defaulter (inactive, SPUB, or refilled recently)
        """
        enrollment = await self.get_enrollment(enrollment_id)
        status = enrollment.compliance(as_of)
        if not status.is_potential_defaulter:
            raise ValidationError(
                "Only potential defaulters can be moved to the defaulter list",
                field="latest_refill_date",
            )

        remark = f"Moved to defaulter on {as_of.isoformat()}"
        if reason and reason.strip():
            remark = f"{remark}: {reason.strip()}"
        enrollment.append_remark(remark)
        enrollment.is_active = False

        enrollment = await self.repo.update_enrollment(enrollment)
        self.log_audit_event(
            {
                "event": "enrollment_moved_to_defaulter",
                "enrollment_id": str(enrollment.id),
                "days_since_refill": status.days_since_refill,
            }
        )
        return enrollment

    # ============= Maintenance =============
    async def cleanup_orphans(self) -> int:
        """Delete enrollments whose patient or drug no longer exists."""
        orphans = await self.repo.get_orphaned_enrollments()
        if not orphans:
            return 0
        ids = [str(e.id) for e in orphans]
        removed = await self.repo.delete_enrollments(orphans)
        self.log_audit_event(
            {
                "event": "orphaned_enrollments_removed",
                "count": removed,
                "enrollment_ids": ids,
            }
        )
        return removed

    # ============= Helpers =============
    async def _require_patient(self, patient_id: uuid.UUID) -> None:
        patient = await self.patient_repo.get_patient_by_id(patient_id)
        if not patient:
            raise NotFoundError("Patient", patient_id, field="patient_id")

    async def _require_drug(self, drug_id: uuid.UUID) -> Drug:
        drug = await self.drug_repo.get_drug_by_id(drug_id)
        if not drug:
            raise NotFoundError("Drug", drug_id, field="drug_id")
        return drug

    async def _check_no_active_duplicate(
        self,
        patient_id: uuid.UUID,
        drug_id: uuid.UUID,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        existing = await self.repo.get_active_enrollment(
            patient_id, drug_id, exclude_id=exclude_id
        )
        if existing:
            raise ConflictError(DUPLICATE_ACTIVE_MESSAGE, field="drug_id")

    async def _warn_if_over_quota(self, drug: Drug, patient_id: uuid.UUID) -> None:
        """Over-enrollment is allowed but logged."""
        active = await self.repo.list_enrollments(
            EnrollmentFilters(drug_id=drug.id, active_only=True)
        )
        status = compute_quota_status(drug, active)
        if status.is_full:
            self.log_warning(
                {
                    "event": "drug_over_quota",
                    "drug_id": str(drug.id),
                    "drug_name": drug.name,
                    "quota_number": status.quota_number,
                    "active_before": status.active,
                    "patient_id": str(patient_id),
                }
            )

    async def _raise_for_integrity_error(self, exc: IntegrityError) -> None:
        await self.repo.rollback()
        if _is_active_pair_violation(exc):
            self.log_warning(
                {"event": "duplicate_active_enrollment_rejected", "source": "constraint"}
            )
            raise ConflictError(DUPLICATE_ACTIVE_MESSAGE, field="drug_id")
        raise exc
