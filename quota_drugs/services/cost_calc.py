"""
Cost per day parsing and period cost arithmetic.

Accepted cost expressions are a plain non-negative decimal (``"5.50"``) or a
product of non-negative decimal factors joined by ``*`` (``"0.5*2*3"``), the
dose x frequency x unit price composition pharmacists type in. Every write
path for ``cost_per_day`` goes through ``normalize_cost_per_day``.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Tuple, Union

from quota_drugs.core.exceptions import CostExpressionError
from quota_drugs.schemas.drug_schemas import CalculationMethod

CENT = Decimal("0.01")

# Number of days one priced unit lasts under each calculation method
PERIOD_DIVISORS = {
    CalculationMethod.DAILY: 1,
    CalculationMethod.WEEKLY: 7,
    CalculationMethod.MONTHLY: 30,
    CalculationMethod.TWICE_YEARLY: 182,
}


def round_currency(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _parse_factor(token: str, expression: str) -> Decimal:
    token = token.strip()
    if not token:
        raise CostExpressionError(
            f"Invalid cost per day '{expression}': missing number around '*'"
        )
    try:
        value = Decimal(token)
    except InvalidOperation:
        raise CostExpressionError(
            f"Invalid cost per day '{expression}': '{token}' is not a number"
        )
    if not value.is_finite():
        raise CostExpressionError(
            f"Invalid cost per day '{expression}': '{token}' is not a number"
        )
    if value < 0:
        raise CostExpressionError(
            f"Invalid cost per day '{expression}': values cannot be negative"
        )
    return value


def normalize_cost_per_day(raw: Union[str, int, float, Decimal]) -> Decimal:
    """
    Parse a cost per day expression into a cent-rounded Decimal.

    Args:
        raw: A number, or a string holding a number or ``*``-separated product

    Returns:
        The product of all factors, rounded half-up to 2 decimal places

    Raises:
        CostExpressionError: Empty input, a non-numeric or negative factor
    """
    if raw is None or isinstance(raw, bool):
        raise CostExpressionError("Cost per day is required")

    expression = str(raw).strip()
    if not expression:
        raise CostExpressionError("Cost per day is required")

    result = Decimal(1)
    for token in expression.split("*"):
        result *= _parse_factor(token, expression)

    if result < 0:
        raise CostExpressionError(
            f"Invalid cost per day '{expression}': result cannot be negative"
        )
    return round_currency(result)


def normalize_optional_cost(raw) -> Optional[Decimal]:
    """Blank input means no manual cost; anything else must parse."""
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    return normalize_cost_per_day(raw)


def suggest_cost_per_day(drug) -> Optional[Decimal]:
    """
    Advisory cost per day derived from the drug's unit price.

    Used only to prefill the enrollment form; it never replaces a value the
    user typed. Returns ``None`` when the drug has no price.
    """
    if drug.price is None:
        return None
    method = drug.calculation_method or CalculationMethod.DAILY
    divisor = PERIOD_DIVISORS[CalculationMethod(method)]
    return round_currency(Decimal(drug.price) / Decimal(divisor))


def overlap_window(
    start: Optional[date],
    end: Optional[date],
    period_start: date,
    period_end: date,
    as_of: date,
) -> Optional[Tuple[date, date]]:
    """
    Intersect an enrollment's prescription window with a report period.

    An open-ended prescription runs up to ``as_of``; a missing start date
    counts from the beginning of the period. Returns ``None`` when the two
    windows do not meet.
    """
    effective_start = start or period_start
    effective_end = end or as_of
    lo = max(effective_start, period_start)
    hi = min(effective_end, period_end)
    if lo > hi:
        return None
    return lo, hi


def active_days(overlap_start: date, overlap_end: date) -> int:
    """Days in the closed interval, both ends included."""
    return (overlap_end - overlap_start).days + 1


def yearly_cost(
    cost_per_day: Decimal,
    overlap_start: Optional[date],
    overlap_end: Optional[date],
) -> Decimal:
    """Cost per day times the number of active days in the overlap."""
    if overlap_start is None or overlap_end is None or overlap_start > overlap_end:
        return Decimal("0.00")
    days = active_days(overlap_start, overlap_end)
    return round_currency(Decimal(cost_per_day) * days)


def contributes_to_cost(enrollment) -> bool:
    """Only active enrollments with a manually entered cost are costed."""
    return bool(enrollment.is_active) and enrollment.cost_per_day is not None


def enrollment_period_cost(
    enrollment, period_start: date, period_end: date, as_of: date
) -> Optional[Decimal]:
    """
    Cost of one enrollment within a period.

    Returns ``None`` for enrollments excluded from costing (inactive, or no
    manual cost), which callers must keep apart from a genuine zero.
    """
    if not contributes_to_cost(enrollment):
        return None
    window = overlap_window(
        enrollment.prescription_start_date,
        enrollment.prescription_end_date,
        period_start,
        period_end,
        as_of,
    )
    if window is None:
        return Decimal("0.00")
    return yearly_cost(enrollment.cost_per_day, *window)


def safe_average(total: Decimal, count: int) -> Decimal:
    """Average rounded to cents; 0 when there is nothing to divide by."""
    if count <= 0:
        return Decimal("0.00")
    return round_currency(Decimal(total) / count)
