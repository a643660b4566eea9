import uuid
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.api.dependencies import get_db
from quota_drugs.core.exceptions import QuotaDrugError
from quota_drugs.schemas.department_schemas import (
    DepartmentCreateSchema,
    DepartmentListItemSchema,
    DepartmentResponseSchema,
    DepartmentSummarySchema,
    DepartmentUpdateSchema,
)
from quota_drugs.services.department_service import DepartmentService
from quota_drugs.core.utils import logger


router = APIRouter(prefix="/departments", tags=["departments"])


# ============= Department CRUD Routes =============
@router.post(
    "",
    response_model=DepartmentResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_department(
    department_data: DepartmentCreateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a department.

    Raises:
        409: A department with the same name exists
        500: Internal server error
    """
    service = DepartmentService(db)

    try:
        department = await service.create_department(department_data)

        logger.log_info(
            {
                "event": "department_created",
                "department_id": str(department.id),
                "name": department.name,
            }
        )

        return DepartmentResponseSchema.model_validate(department, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "department_creation_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating department",
        )


@router.get(
    "",
    response_model=List[DepartmentListItemSchema],
)
async def list_departments(db: AsyncSession = Depends(get_db)):
    """List departments with their drug count and active enrollments."""
    service = DepartmentService(db)

    try:
        rows = await service.list_departments()

        return [
            DepartmentListItemSchema(
                id=department.id,
                name=department.name,
                created_at=department.created_at,
                updated_at=department.updated_at,
                drug_count=drug_count,
                total_enrollments=active_count,
            )
            for department, drug_count, active_count in rows
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "list_departments_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving departments",
        )


@router.get(
    "/{department_id}",
    response_model=DepartmentResponseSchema,
)
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    service = DepartmentService(db)

    try:
        department = await service.get_department(department_id)
        return DepartmentResponseSchema.model_validate(department, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "get_department_error",
                "department_id": str(department_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving department",
        )


@router.get(
    "/{department_id}/summary",
    response_model=DepartmentSummarySchema,
)
async def get_department_summary(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Quota rollup of a department across its drugs.

    Returns:
        DepartmentSummarySchema: Totals plus one quota row per drug
    """
    service = DepartmentService(db)

    try:
        summary = await service.get_summary(department_id)

        logger.log_info(
            {
                "event": "department_summary_fetched",
                "department_id": str(department_id),
                "utilization_percentage": summary.utilization_percentage,
            }
        )

        return summary

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "department_summary_error",
                "department_id": str(department_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while summarizing department",
        )


@router.put(
    "/{department_id}",
    response_model=DepartmentResponseSchema,
)
async def update_department(
    department_id: uuid.UUID,
    update_data: DepartmentUpdateSchema,
    db: AsyncSession = Depends(get_db),
):
    service = DepartmentService(db)

    try:
        department = await service.update_department(department_id, update_data)

        logger.log_info(
            {
                "event": "department_updated",
                "department_id": str(department.id),
                "updated_fields": list(update_data.model_dump(exclude_unset=True).keys()),
            }
        )

        return DepartmentResponseSchema.model_validate(department, from_attributes=True)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "update_department_error",
                "department_id": str(department_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while updating department",
        )


@router.delete(
    "/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a department.

    Its drugs and all of their enrollments are deleted with it.
    """
    service = DepartmentService(db)

    try:
        await service.delete_department(department_id)

        logger.log_audit_event(
            {"event": "department_deleted", "department_id": str(department_id)}
        )

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "delete_department_error",
                "department_id": str(department_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while deleting department",
        )
