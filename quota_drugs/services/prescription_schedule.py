"""Keeps an enrollment's duration and prescription end date in step."""

from datetime import date, timedelta
from typing import Optional, Tuple

from quota_drugs.core.exceptions import ValidationError


def end_date_from_duration(start: date, duration: int) -> date:
    return start + timedelta(days=duration)


def duration_between(start: date, end: date) -> int:
    if end < start:
        raise ValidationError(
            "Prescription end date cannot be before the start date",
            field="prescription_end_date",
        )
    return (end - start).days


def reconcile_schedule(
    start: Optional[date],
    end: Optional[date],
    duration: Optional[int],
    end_date_edited: bool,
) -> Tuple[Optional[date], Optional[int]]:
    """
    Return a consistent ``(prescription_end_date, duration)`` pair.

    When the end date was the field edited it wins and the duration is
    recomputed from it; otherwise the duration drives the end date. Clearing
    the end date makes the prescription open-ended and clears the duration.
    """
    if duration is not None and duration < 0:
        raise ValidationError("Duration cannot be negative", field="duration")

    if end_date_edited:
        if end is None:
            return None, None
        if start is None:
            return end, None
        return end, duration_between(start, end)

    if duration is not None:
        if start is None:
            raise ValidationError(
                "A start date is required to apply a duration",
                field="prescription_start_date",
            )
        return end_date_from_duration(start, duration), duration

    if start is not None and end is not None:
        return end, duration_between(start, end)

    return end, duration
