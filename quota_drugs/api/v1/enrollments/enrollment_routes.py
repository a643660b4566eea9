import uuid
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.api.dependencies import get_as_of, get_db
from quota_drugs.core.exceptions import QuotaDrugError
from quota_drugs.core.filters import EnrollmentFilters, ReportFilters
from quota_drugs.schemas.enrollment_schemas import (
    CleanupResultSchema,
    DeactivateEnrollmentSchema,
    EnrollmentCreateSchema,
    EnrollmentResponseSchema,
    EnrollmentUpdateSchema,
    MoveToDefaulterSchema,
    RefillUpdateSchema,
)
from quota_drugs.schemas.report_schemas import YearlyCostReport
from quota_drugs.services.enrollment_service import EnrollmentService
from quota_drugs.services.report_service import ReportService
from quota_drugs.core.utils import logger


router = APIRouter(prefix="/enrollments", tags=["enrollments"])


def _internal_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


# ============= Maintenance and Defaulter Routes =============
@router.delete(
    "/cleanup",
    response_model=CleanupResultSchema,
)
async def cleanup_enrollments(db: AsyncSession = Depends(get_db)):
    """Delete enrollments whose patient or drug no longer exists."""
    service = EnrollmentService(db)

    try:
        removed = await service.cleanup_orphans()

        logger.log_info({"event": "enrollments_cleaned_up", "removed": removed})

        return CleanupResultSchema(removed=removed)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "cleanup_enrollments_error", "error": str(e)},
            exc_info=True,
        )
        raise _internal_error("An error occurred while cleaning up enrollments")


@router.get(
    "/defaulters/potential",
    response_model=List[EnrollmentResponseSchema],
)
async def get_potential_defaulters(
    department_id: Optional[str] = Query(
        None, description="Department id, or 'all' for every department"
    ),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Active, non-SPUB enrollments whose last refill is over 180 days old.

    Enrollments that were never refilled are not included.
    """
    service = EnrollmentService(db)

    try:
        enrollments = await service.potential_defaulters(
            as_of, EnrollmentFilters.from_query(department_id=department_id)
        )

        logger.log_info(
            {
                "event": "potential_defaulters_listed",
                "as_of": as_of.isoformat(),
                "count": len(enrollments),
            }
        )

        return [
            EnrollmentResponseSchema.from_enrollment(e, as_of) for e in enrollments
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "potential_defaulters_error", "error": str(e)},
            exc_info=True,
        )
        raise _internal_error("An error occurred while retrieving potential defaulters")


@router.get(
    "/reports/yearly-costs",
    response_model=YearlyCostReport,
)
async def get_yearly_costs(
    year: Optional[str] = Query(None, description="Calendar year, defaults to the as-of year"),
    department_id: Optional[str] = Query(
        None, description="Department id, or 'all' for every department"
    ),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Yearly cost summary with department totals and per-enrollment costs.

    Enrollments without a manual cost per day are listed with a null
    ``calculated_yearly_cost`` and left out of every total.
    """
    service = ReportService(db)

    try:
        report = await service.yearly_costs(
            ReportFilters.from_query(department_id=department_id, year=year), as_of
        )

        logger.log_info(
            {
                "event": "report_generated",
                "report_type": "yearly_costs",
                "year": report.year,
                "total_enrollments": report.summary.total_enrollments,
            }
        )

        return report

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "yearly_costs_error", "error": str(e)},
            exc_info=True,
        )
        raise _internal_error("An error occurred while computing yearly costs")


# ============= Enrollment CRUD Routes =============
@router.post(
    "",
    response_model=EnrollmentResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_enrollment(
    enrollment_data: EnrollmentCreateSchema,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Enroll a patient on a quota drug.

    Raises:
        404: Patient or drug not found
        409: Patient is already enrolled in this drug
        422: Invalid cost per day or prescription dates
        500: Internal server error
    """
    service = EnrollmentService(db)

    try:
        enrollment = await service.create_enrollment(enrollment_data, as_of)

        logger.log_info(
            {
                "event": "enrollment_created",
                "enrollment_id": str(enrollment.id),
                "patient_id": str(enrollment.patient_id),
                "drug_id": str(enrollment.drug_id),
                "is_active": enrollment.is_active,
            }
        )

        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "enrollment_creation_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise _internal_error("An unexpected error occurred while creating enrollment")


@router.get(
    "",
    response_model=List[EnrollmentResponseSchema],
)
async def list_enrollments(
    drug_id: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    department_id: Optional[str] = Query(
        None, description="Department id, or 'all' for every department"
    ),
    active_only: Optional[str] = Query(None, description="'true' or 'false'"),
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    List enrollments with refill status computed as of the request day.

    A date range keeps enrollments whose prescription window overlaps it.
    """
    service = EnrollmentService(db)

    try:
        filters = EnrollmentFilters.from_query(
            drug_id=drug_id,
            patient_id=patient_id,
            department_id=department_id,
            active_only=active_only,
            start_date=start_date,
            end_date=end_date,
        )
        enrollments = await service.list_enrollments(filters)

        return [
            EnrollmentResponseSchema.from_enrollment(e, as_of) for e in enrollments
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "list_enrollments_error", "error": str(e)},
            exc_info=True,
        )
        raise _internal_error("An error occurred while retrieving enrollments")


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponseSchema,
)
async def get_enrollment(
    enrollment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    service = EnrollmentService(db)

    try:
        enrollment = await service.get_enrollment(enrollment_id)
        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "get_enrollment_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while retrieving enrollment")


@router.put(
    "/{enrollment_id}",
    response_model=EnrollmentResponseSchema,
)
async def update_enrollment(
    enrollment_id: uuid.UUID,
    update_data: EnrollmentUpdateSchema,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Update an enrollment.

    Sending ``prescription_end_date`` recomputes ``duration``; sending
    ``duration`` recomputes the end date from the start date.
    """
    service = EnrollmentService(db)

    try:
        enrollment = await service.update_enrollment(enrollment_id, update_data)

        logger.log_info(
            {
                "event": "enrollment_updated",
                "enrollment_id": str(enrollment_id),
                "updated_fields": list(update_data.model_dump(exclude_unset=True).keys()),
            }
        )

        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "update_enrollment_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while updating enrollment")


@router.delete(
    "/{enrollment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_enrollment(
    enrollment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete an enrollment outright. Prefer deactivating to keep cost history."""
    service = EnrollmentService(db)

    try:
        await service.delete_enrollment(enrollment_id)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "delete_enrollment_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while deleting enrollment")


# ============= Enrollment Lifecycle Routes =============
@router.patch(
    "/{enrollment_id}/refill",
    response_model=EnrollmentResponseSchema,
)
async def update_refill_date(
    enrollment_id: uuid.UUID,
    refill_data: RefillUpdateSchema,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    service = EnrollmentService(db)

    try:
        enrollment = await service.patch_refill_date(
            enrollment_id, refill_data.latest_refill_date
        )

        logger.log_info(
            {
                "event": "enrollment_refilled",
                "enrollment_id": str(enrollment_id),
                "latest_refill_date": refill_data.latest_refill_date.isoformat(),
            }
        )

        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "refill_update_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while updating the refill date")


@router.patch(
    "/{enrollment_id}/deactivate",
    response_model=EnrollmentResponseSchema,
)
async def deactivate_enrollment(
    enrollment_id: uuid.UUID,
    deactivate_data: Optional[DeactivateEnrollmentSchema] = None,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """Mark an enrollment inactive, freeing its quota slot."""
    service = EnrollmentService(db)

    try:
        enrollment = await service.deactivate_enrollment(
            enrollment_id, deactivate_data.remarks if deactivate_data else None
        )
        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "deactivate_enrollment_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while deactivating enrollment")


@router.post(
    "/{enrollment_id}/move-to-defaulter",
    response_model=EnrollmentResponseSchema,
)
async def move_to_defaulter(
    enrollment_id: uuid.UUID,
    defaulter_data: Optional[MoveToDefaulterSchema] = None,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Retire a potential defaulter.

    Raises:
        404: Enrollment not found
        422: Enrollment is not a potential defaulter
    """
    service = EnrollmentService(db)

    try:
        enrollment = await service.move_to_defaulter(
            enrollment_id, as_of, defaulter_data.reason if defaulter_data else None
        )
        return EnrollmentResponseSchema.from_enrollment(enrollment, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "move_to_defaulter_error",
                "enrollment_id": str(enrollment_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise _internal_error("An error occurred while moving enrollment to defaulters")
