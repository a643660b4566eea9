"""
Query parameter vocabulary shared by the listing and report endpoints.

``department_id`` accepts ``"all"`` as a pass-through, ``active_only`` is the
string ``"true"`` or ``"false"``, and every date crosses the boundary as an
ISO ``YYYY-MM-DD`` string.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

from quota_drugs.core.exceptions import ValidationError

ALL = "all"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: Optional[str], field: str) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` string; blank means no value."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not _ISO_DATE.match(value):
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format", field=field)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} is not a valid calendar date", field=field)


def parse_uuid(value: Optional[str], field: str) -> Optional[uuid.UUID]:
    if value is None or not value.strip():
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        raise ValidationError(f"{field} is not a valid identifier", field=field)


def parse_department_filter(value: Optional[str]) -> Optional[uuid.UUID]:
    """``None``, blank and ``"all"`` all mean every department."""
    if value is None or value.strip().lower() in ("", ALL):
        return None
    return parse_uuid(value, "department_id")


def parse_active_only(value: Optional[str]) -> bool:
    if value is None or not value.strip():
        return False
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ValidationError("active_only must be 'true' or 'false'", field="active_only")


def parse_year(value: Optional[str]) -> Optional[int]:
    if value is None or not str(value).strip():
        return None
    try:
        year = int(str(value).strip())
    except ValueError:
        raise ValidationError("year must be an integer", field="year")
    if year < 1900 or year > 2999:
        raise ValidationError("year is out of range", field="year")
    return year


def _iso_date_input(value: Any) -> Any:
    # Body dates must arrive as YYYY-MM-DD strings; date objects pass through
    if isinstance(value, str):
        if not _ISO_DATE.match(value.strip()):
            raise ValueError("Date must be in YYYY-MM-DD format")
        return value.strip()
    return value


IsoDate = Annotated[date, BeforeValidator(_iso_date_input)]


@dataclass
class EnrollmentFilters:
    """Filter for ``list_enrollments``; ``None`` fields are not applied."""

    drug_id: Optional[uuid.UUID] = None
    patient_id: Optional[uuid.UUID] = None
    department_id: Optional[uuid.UUID] = None
    active_only: bool = False
    # Keeps enrollments whose prescription window overlaps [start_date, end_date]
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                "start_date must be on or before end_date", field="start_date"
            )

    @classmethod
    def from_query(
        cls,
        drug_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        department_id: Optional[str] = None,
        active_only: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> "EnrollmentFilters":
        return cls(
            drug_id=parse_uuid(drug_id, "drug_id"),
            patient_id=parse_uuid(patient_id, "patient_id"),
            department_id=parse_department_filter(department_id),
            active_only=parse_active_only(active_only),
            start_date=parse_iso_date(start_date, "start_date"),
            end_date=parse_iso_date(end_date, "end_date"),
        )


@dataclass
class ReportFilters:
    department_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    year: Optional[int] = None

    def __post_init__(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                "start_date must be on or before end_date", field="start_date"
            )

    @classmethod
    def from_query(
        cls,
        department_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        year: Optional[str] = None,
    ) -> "ReportFilters":
        return cls(
            department_id=parse_department_filter(department_id),
            start_date=parse_iso_date(start_date, "start_date"),
            end_date=parse_iso_date(end_date, "end_date"),
            year=parse_year(year),
        )
