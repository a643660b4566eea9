from fastapi import APIRouter
from .departments.department_routes import router as department_router
from .drugs.drug_routes import router as drug_router
from .patients.patient_routes import router as patient_router
from .enrollments.enrollment_routes import router as enrollment_router
from .reports.report_routes import router as report_router

router = APIRouter()


router.include_router(department_router)
router.include_router(drug_router)
router.include_router(patient_router)
router.include_router(enrollment_router)
router.include_router(report_router)
