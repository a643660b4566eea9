import uuid
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.api.dependencies import get_as_of, get_db
from quota_drugs.core.exceptions import QuotaDrugError
from quota_drugs.schemas.enrollment_schemas import EnrollmentResponseSchema
from quota_drugs.schemas.patient_schemas import (
    PatientCreateSchema,
    PatientResponseSchema,
    PatientUpdateSchema,
)
from quota_drugs.services.patient_service import PatientService
from quota_drugs.core.utils import logger


router = APIRouter(prefix="/patients", tags=["patients"])


# ============= Patient CRUD Routes =============
@router.post(
    "",
    response_model=PatientResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_patient(
    patient_data: PatientCreateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a patient. The name is stored upper-cased.

    Raises:
        409: IC number already registered
        500: Internal server error
    """
    service = PatientService(db)

    try:
        patient = await service.create_patient(patient_data)

        logger.log_info(
            {"event": "patient_created", "patient_id": str(patient.id)}
        )

        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "patient_creation_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating patient",
        )


@router.get(
    "",
    response_model=List[PatientResponseSchema],
)
async def list_patients(
    search: Optional[str] = Query(None, description="Name or IC number (partial match)"),
    db: AsyncSession = Depends(get_db),
):
    service = PatientService(db)

    try:
        patients = await service.list_patients(search)
        return [
            PatientResponseSchema.model_validate(p, from_attributes=True)
            for p in patients
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "list_patients_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving patients",
        )


@router.get(
    "/{patient_id}",
    response_model=PatientResponseSchema,
)
async def get_patient(
    patient_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    service = PatientService(db)

    try:
        patient = await service.get_patient(patient_id)
        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "get_patient_error", "patient_id": str(patient_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving patient",
        )


@router.get(
    "/{patient_id}/enrollments",
    response_model=List[EnrollmentResponseSchema],
)
async def list_patient_enrollments(
    patient_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """Every enrollment of a patient, active or retired."""
    service = PatientService(db)

    try:
        enrollments = await service.list_patient_enrollments(patient_id)
        return [
            EnrollmentResponseSchema.from_enrollment(e, as_of) for e in enrollments
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "list_patient_enrollments_error",
                "patient_id": str(patient_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving patient enrollments",
        )


@router.put(
    "/{patient_id}",
    response_model=PatientResponseSchema,
)
async def update_patient(
    patient_id: uuid.UUID,
    update_data: PatientUpdateSchema,
    db: AsyncSession = Depends(get_db),
):
    service = PatientService(db)

    try:
        patient = await service.update_patient(patient_id, update_data)

        logger.log_info(
            {
                "event": "patient_updated",
                "patient_id": str(patient_id),
                "updated_fields": list(update_data.model_dump(exclude_unset=True).keys()),
            }
        )

        return PatientResponseSchema.model_validate(patient, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "update_patient_error", "patient_id": str(patient_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while updating patient",
        )


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_patient(
    patient_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a patient and all of their enrollments."""
    service = PatientService(db)

    try:
        await service.delete_patient(patient_id)

        logger.log_audit_event({"event": "patient_deleted", "patient_id": str(patient_id)})

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "delete_patient_error", "patient_id": str(patient_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while deleting patient",
        )
