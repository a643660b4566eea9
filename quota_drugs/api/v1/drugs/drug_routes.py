import uuid
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.api.dependencies import get_db
from quota_drugs.core.exceptions import QuotaDrugError
from quota_drugs.core.filters import parse_department_filter
from quota_drugs.schemas.drug_schemas import (
    DrugCreateSchema,
    DrugResponseSchema,
    DrugUpdateSchema,
    QuotaStatusSchema,
)
from quota_drugs.services.cost_calc import suggest_cost_per_day
from quota_drugs.services.drug_service import DrugService
from quota_drugs.core.utils import logger


router = APIRouter(prefix="/drugs", tags=["drugs"])


# ============= Drug CRUD Routes =============
@router.post(
    "",
    response_model=DrugResponseSchema,
    status_code=status.HTTP_201_CREATED,
)
async def create_drug(
    drug_data: DrugCreateSchema,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a quota drug under a department.

    Raises:
        404: Department not found
        409: Drug with the same name exists in the department
        422: Negative quota or price
        500: Internal server error
    """
    service = DrugService(db)

    try:
        drug = await service.create_drug(drug_data)
        _, quota_status = await service.get_quota_status(drug.id)

        logger.log_info(
            {
                "event": "drug_created",
                "drug_id": str(drug.id),
                "name": drug.name,
                "department_id": str(drug.department_id),
                "quota_number": drug.quota_number,
            }
        )

        return DrugResponseSchema.from_drug(
            drug, quota_status, suggest_cost_per_day(drug)
        )

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "drug_creation_error",
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while creating drug",
        )


@router.get(
    "",
    response_model=List[DrugResponseSchema],
)
async def list_drugs(
    department_id: Optional[str] = Query(
        None, description="Department id, or 'all' for every department"
    ),
    db: AsyncSession = Depends(get_db),
):
    """
    List drugs with live quota figures.

    Utilization is coloured with the list thresholds (100/80/50 per cent).
    """
    service = DrugService(db)

    try:
        rows = await service.list_drugs(parse_department_filter(department_id))

        return [
            DrugResponseSchema.from_drug(drug, quota_status, suggest_cost_per_day(drug))
            for drug, quota_status in rows
        ]

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "list_drugs_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving drugs",
        )


@router.get(
    "/{drug_id}",
    response_model=DrugResponseSchema,
)
async def get_drug(
    drug_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    service = DrugService(db)

    try:
        drug, quota_status = await service.get_quota_status(drug_id)
        return DrugResponseSchema.from_drug(
            drug, quota_status, suggest_cost_per_day(drug)
        )

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "get_drug_error", "drug_id": str(drug_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while retrieving drug",
        )


@router.get(
    "/{drug_id}/quota-status",
    response_model=QuotaStatusSchema,
)
async def get_drug_quota_status(
    drug_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Active patients, available slots and utilization of one drug."""
    service = DrugService(db)

    try:
        drug, quota_status = await service.get_quota_status(drug_id)
        return QuotaStatusSchema.from_status(drug, quota_status)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {
                "event": "drug_quota_status_error",
                "drug_id": str(drug_id),
                "error": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while computing quota status",
        )


@router.put(
    "/{drug_id}",
    response_model=DrugResponseSchema,
)
async def update_drug(
    drug_id: uuid.UUID,
    update_data: DrugUpdateSchema,
    db: AsyncSession = Depends(get_db),
):
    service = DrugService(db)

    try:
        await service.update_drug(drug_id, update_data)
        drug, quota_status = await service.get_quota_status(drug_id)

        logger.log_info(
            {
                "event": "drug_updated",
                "drug_id": str(drug_id),
                "updated_fields": list(update_data.model_dump(exclude_unset=True).keys()),
            }
        )

        return DrugResponseSchema.from_drug(
            drug, quota_status, suggest_cost_per_day(drug)
        )

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "update_drug_error", "drug_id": str(drug_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while updating drug",
        )


@router.delete(
    "/{drug_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_drug(
    drug_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a drug and every enrollment on it."""
    service = DrugService(db)

    try:
        await service.delete_drug(drug_id)

        logger.log_audit_event({"event": "drug_deleted", "drug_id": str(drug_id)})

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "delete_drug_error", "drug_id": str(drug_id), "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while deleting drug",
        )
