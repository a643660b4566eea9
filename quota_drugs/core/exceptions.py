"""
Domain error kinds.

Services raise these instead of ``HTTPException`` so the accounting rules can
be exercised without a web request; ``register_exception_handlers`` maps them
onto HTTP responses carrying a field-level message.
"""

import uuid
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from quota_drugs.core.utils import logger


class QuotaDrugError(Exception):
    """Base class for errors the caller can act on."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "field": self.field, "error": self.error}


class ValidationError(QuotaDrugError):
    """Bad input: unparseable cost, missing field, end date before start."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error = "validation_error"


class CostExpressionError(ValidationError):
    """A cost per day that is neither a number nor a product of numbers."""

    def __init__(self, message: str):
        super().__init__(message, field="cost_per_day")


class ConflictError(QuotaDrugError):
    """Write rejected because it would break a uniqueness rule."""

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class NotFoundError(QuotaDrugError):
    """A referenced department, drug, patient or enrollment does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"

    def __init__(
        self,
        resource: str,
        resource_id: Optional[Union[uuid.UUID, str]] = None,
        field: Optional[str] = None,
    ):
        super().__init__(f"{resource} not found", field=field)
        self.resource = resource
        self.resource_id = resource_id


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain errors as JSON with their status code."""

    @app.exception_handler(QuotaDrugError)
    async def quota_drug_error_handler(request: Request, exc: QuotaDrugError):
        logger.log_warning(
            {
                "event": "request_rejected",
                "path": request.url.path,
                "error": exc.error,
                "field": exc.field,
                "detail": exc.message,
            }
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
