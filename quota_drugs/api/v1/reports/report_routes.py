from datetime import date
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quota_drugs.api.dependencies import get_as_of, get_db
from quota_drugs.core.exceptions import QuotaDrugError
from quota_drugs.core.filters import ReportFilters
from quota_drugs.schemas.report_schemas import (
    CostAnalysisReport,
    DashboardOverview,
    DefaulterRow,
    QuotaUtilizationRow,
)
from quota_drugs.services.report_service import ReportService
from quota_drugs.core.utils import logger


router = APIRouter(prefix="/reports", tags=["reports"])


async def get_report_filters(
    department_id: Optional[str] = Query(
        None, description="Department id, or 'all' for every department"
    ),
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    year: Optional[str] = Query(None, description="Calendar year"),
) -> ReportFilters:
    return ReportFilters.from_query(
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
        year=year,
    )


# ============= Dashboard =============
@router.get(
    "/dashboard",
    response_model=DashboardOverview,
)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Headline counts for the home page.

    Returns key metrics including:
    - Departments, drugs and patients on record
    - Active enrollments and potential defaulters
    - Refills recorded in the last 30 days
    """
    service = ReportService(db)

    try:
        overview = await service.dashboard(as_of)

        logger.log_info(
            {"event": "dashboard_overview_fetched", "as_of": as_of.isoformat()}
        )

        return overview

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "dashboard_overview_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while fetching dashboard overview",
        )


# ============= Reports =============
@router.get(
    "/cost-analysis",
    response_model=CostAnalysisReport,
)
async def get_cost_analysis(
    filters: ReportFilters = Depends(get_report_filters),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Cost per department and drug.

    Without start and end dates the window is the calendar year of the
    as-of day.
    """
    service = ReportService(db)

    try:
        report = await service.cost_analysis(filters, as_of)

        logger.log_info(
            {
                "event": "report_generated",
                "report_type": "cost_analysis",
                "start_date": report.start_date.isoformat(),
                "end_date": report.end_date.isoformat(),
                "rows": len(report.rows),
            }
        )

        return report

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "cost_analysis_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while generating the cost analysis",
        )


@router.get(
    "/quota-utilization",
    response_model=List[QuotaUtilizationRow],
)
async def get_quota_utilization(
    filters: ReportFilters = Depends(get_report_filters),
    db: AsyncSession = Depends(get_db),
):
    """Per-drug quota usage coloured at 90 and 75 per cent."""
    service = ReportService(db)

    try:
        rows = await service.quota_utilization(filters)

        logger.log_info(
            {"event": "report_generated", "report_type": "quota_utilization", "rows": len(rows)}
        )

        return rows

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "quota_utilization_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while generating the quota utilization report",
        )


@router.get(
    "/defaulters",
    response_model=List[DefaulterRow],
)
async def get_defaulters(
    filters: ReportFilters = Depends(get_report_filters),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    service = ReportService(db)

    try:
        rows = await service.defaulters(filters, as_of)

        logger.log_info(
            {"event": "report_generated", "report_type": "defaulters", "rows": len(rows)}
        )

        return rows

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "defaulters_report_error", "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while generating the defaulter report",
        )


@router.get(
    "/export/{report_type}",
    response_model=List[Dict[str, Any]],
)
async def get_export_rows(
    report_type: str,
    filters: ReportFilters = Depends(get_report_filters),
    db: AsyncSession = Depends(get_db),
    as_of: date = Depends(get_as_of),
):
    """
    Computed rows for a report, as handed to the spreadsheet exporter.

    Raises:
        422: Unknown report type
    """
    service = ReportService(db)

    try:
        return await service.build_report(report_type, filters, as_of)

    except QuotaDrugError:
        raise

    except Exception as e:
        logger.log_error(
            {"event": "export_rows_error", "report_type": report_type, "error": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while building report rows",
        )
