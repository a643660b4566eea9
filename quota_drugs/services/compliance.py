"""
Refill compliance classification.

An enrollment's refill recency is bucketed into a display tag and, for
active non-SPUB enrollments refilled more than 180 days ago, flagged as a
potential defaulter. The result depends on the as-of day, so it is computed
on every read and never persisted.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

DEFAULTER_THRESHOLD_DAYS = 180
DUE_SOON_THRESHOLD_DAYS = 90


class RefillTag(str, Enum):
    """Last-refill tag shown next to an enrollment."""

    NEVER = "never"
    CURRENT = "current"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"

    @property
    def color(self) -> str:
        return _TAG_COLORS[self]


_TAG_COLORS = {
    RefillTag.NEVER: "orange",
    RefillTag.CURRENT: "green",
    RefillTag.DUE_SOON: "orange",
    RefillTag.OVERDUE: "red",
}


@dataclass(frozen=True)
class ComplianceStatus:
    is_potential_defaulter: bool
    days_since_refill: Optional[int]
    refill_tag: RefillTag

    @property
    def refill_color(self) -> str:
        return self.refill_tag.color

    @property
    def never_refilled(self) -> bool:
        return self.days_since_refill is None


def days_since(refill_date: date, as_of: date) -> int:
    """Whole days from ``refill_date`` to ``as_of``."""
    return (as_of - refill_date).days


def refill_tag_for(days_since_refill: Optional[int]) -> RefillTag:
    if days_since_refill is None:
        return RefillTag.NEVER
    if days_since_refill > DEFAULTER_THRESHOLD_DAYS:
        return RefillTag.OVERDUE
    if days_since_refill > DUE_SOON_THRESHOLD_DAYS:
        return RefillTag.DUE_SOON
    return RefillTag.CURRENT


def classify(enrollment, as_of: date) -> ComplianceStatus:
    """
    Classify an enrollment's refill recency as of ``as_of``.

    Inactive and SPUB enrollments are never potential defaulters, and an
    enrollment that was never refilled is tagged ``NEVER`` rather than being
    treated as a defaulter.

    Args:
        enrollment: Any object with ``is_active``, ``spub`` and
            ``latest_refill_date`` attributes
        as_of: The day the classification is made for

    Returns:
        ComplianceStatus for display and defaulter reporting
    """
    refill_date = enrollment.latest_refill_date
    if refill_date is None:
        return ComplianceStatus(
            is_potential_defaulter=False,
            days_since_refill=None,
            refill_tag=RefillTag.NEVER,
        )

    elapsed = days_since(refill_date, as_of)
    tag = refill_tag_for(elapsed)
    is_defaulter = (
        bool(enrollment.is_active)
        and not enrollment.spub
        and tag is RefillTag.OVERDUE
    )
    return ComplianceStatus(
        is_potential_defaulter=is_defaulter,
        days_since_refill=elapsed,
        refill_tag=tag,
    )


def is_potential_defaulter(enrollment, as_of: date) -> bool:
    return classify(enrollment, as_of).is_potential_defaulter
