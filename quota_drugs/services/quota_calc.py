"""
Live quota accounting for drugs.

Active enrollment counts are always derived from the enrollment set handed
in; nothing here is cached between calls.

Two utilization policies exist on purpose. The drug list colours a drug
against 100/80/50 per cent, while the report and prescriber views colour
against 90/75 per cent. They are kept as separate named policies and each
call site picks its own.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple


@dataclass(frozen=True)
class UtilizationBand:
    threshold: int
    tier: str
    color: str


@dataclass(frozen=True)
class UtilizationPolicy:
    """Ordered bands, highest threshold first, plus the band below them all."""

    name: str
    bands: Tuple[UtilizationBand, ...]
    floor: UtilizationBand

    def classify(self, ratio_pct: Decimal) -> UtilizationBand:
        for band in self.bands:
            if ratio_pct >= band.threshold:
                return band
        return self.floor


LIST_UTILIZATION_POLICY = UtilizationPolicy(
    name="list",
    bands=(
        UtilizationBand(100, "FULL", "red"),
        UtilizationBand(80, "HIGH", "orange"),
        UtilizationBand(50, "MEDIUM", "blue"),
    ),
    floor=UtilizationBand(0, "LOW", "green"),
)

REPORT_UTILIZATION_POLICY = UtilizationPolicy(
    name="report",
    bands=(
        UtilizationBand(90, "FULL", "red"),
        UtilizationBand(75, "HIGH", "orange"),
    ),
    floor=UtilizationBand(0, "LOW", "green"),
)


@dataclass(frozen=True)
class QuotaStatus:
    quota_number: int
    active: int
    available: int
    utilization_pct: int
    tier: str
    color: str

    @property
    def is_full(self) -> bool:
        return self.available <= 0


def utilization_ratio(active: int, quota: int) -> Decimal:
    """Exact utilization in per cent; 0 when the drug has no quota."""
    if quota <= 0:
        return Decimal(0)
    return Decimal(100 * active) / Decimal(quota)


def utilization_percentage(active: int, quota: int) -> int:
    """Utilization rounded half-up to a whole per cent."""
    return int(
        utilization_ratio(active, quota).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    )


def count_active(drug_id, enrollments: Iterable) -> int:
    return sum(
        1 for e in enrollments if e.drug_id == drug_id and e.is_active
    )


def quota_status_from_counts(
    quota_number: int,
    active: int,
    policy: UtilizationPolicy = LIST_UTILIZATION_POLICY,
) -> QuotaStatus:
    quota_number = quota_number or 0
    # Tiering uses the exact ratio, the displayed percentage is rounded
    band = policy.classify(utilization_ratio(active, quota_number))
    return QuotaStatus(
        quota_number=quota_number,
        active=active,
        available=quota_number - active,
        utilization_pct=utilization_percentage(active, quota_number),
        tier=band.tier,
        color=band.color,
    )


def compute_quota_status(
    drug,
    enrollments: Iterable,
    policy: UtilizationPolicy = LIST_UTILIZATION_POLICY,
) -> QuotaStatus:
    """
    Quota status of ``drug`` given the current enrollment set.

    Only enrollments for this drug with ``is_active`` set are counted.
    ``available`` goes negative when a drug is over-enrolled; that state is
    tolerated and reported, not raised.
    """
    return quota_status_from_counts(
        drug.quota_number, count_active(drug.id, enrollments), policy
    )


def combine_quota_statuses(
    statuses: Iterable[QuotaStatus],
    policy: UtilizationPolicy = REPORT_UTILIZATION_POLICY,
) -> QuotaStatus:
    """Roll several drugs' statuses up, e.g. for a department overview."""
    total_quota = 0
    total_active = 0
    for status in statuses:
        total_quota += status.quota_number
        total_active += status.active
    return quota_status_from_counts(total_quota, total_active, policy)

