"""
Cost Calculator Tests

Cost per day parsing, suggestions from the drug price, and period costing.
"""
import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from quota_drugs.core.exceptions import CostExpressionError, ValidationError
from quota_drugs.schemas.drug_schemas import CalculationMethod
from quota_drugs.services.cost_calc import (
    active_days,
    enrollment_period_cost,
    normalize_cost_per_day,
    normalize_optional_cost,
    overlap_window,
    safe_average,
    suggest_cost_per_day,
    yearly_cost,
)


def _enrollment(**fields):
    defaults = dict(
        is_active=True,
        cost_per_day=Decimal("2.00"),
        prescription_start_date=date(2025, 1, 1),
        prescription_end_date=date(2025, 12, 31),
    )
    defaults.update(fields)
    return SimpleNamespace(**defaults)


@pytest.mark.unit
class TestNormalizeCostPerDay:
    def test_product_expression(self):
        assert normalize_cost_per_day("0.5*2*3") == Decimal("3.00")

    def test_plain_number(self):
        assert normalize_cost_per_day("5.5") == Decimal("5.50")

    def test_whitespace_around_factors(self):
        assert normalize_cost_per_day(" 1.5 * 2 ") == Decimal("3.00")

    def test_rounds_half_up_to_cents(self):
        assert normalize_cost_per_day("0.125") == Decimal("0.13")
        assert normalize_cost_per_day("0.333*3") == Decimal("1.00")

    def test_numeric_input(self):
        assert normalize_cost_per_day(4) == Decimal("4.00")

    def test_zero_is_allowed(self):
        assert normalize_cost_per_day("0") == Decimal("0.00")

    @pytest.mark.parametrize("raw", ["abc", "-1", "", "   ", "2**3", "*2", "1*-2", "nan", "inf"])
    def test_rejects_invalid_expressions(self, raw):
        with pytest.raises(CostExpressionError):
            normalize_cost_per_day(raw)

    def test_error_is_a_validation_error_on_cost_field(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_cost_per_day("abc")
        assert exc_info.value.field == "cost_per_day"

    def test_blank_optional_cost_means_no_cost(self):
        assert normalize_optional_cost(None) is None
        assert normalize_optional_cost("  ") is None
        assert normalize_optional_cost("1*2") == Decimal("2.00")


@pytest.mark.unit
class TestSuggestCostPerDay:
    @pytest.mark.parametrize(
        "method, expected",
        [
            (CalculationMethod.DAILY, Decimal("364.00")),
            (CalculationMethod.WEEKLY, Decimal("52.00")),
            (CalculationMethod.MONTHLY, Decimal("12.13")),
            (CalculationMethod.TWICE_YEARLY, Decimal("2.00")),
        ],
    )
    def test_divides_price_by_period(self, method, expected):
        drug = SimpleNamespace(price=Decimal("364.00"), calculation_method=method)
        assert suggest_cost_per_day(drug) == expected

    def test_no_price_no_suggestion(self):
        drug = SimpleNamespace(price=None, calculation_method=CalculationMethod.DAILY)
        assert suggest_cost_per_day(drug) is None


@pytest.mark.unit
class TestPeriodCost:
    def test_full_year_is_365_days(self):
        assert active_days(date(2025, 1, 1), date(2025, 12, 31)) == 365

    def test_yearly_cost_multiplies_active_days(self):
        assert yearly_cost(Decimal("2.00"), date(2025, 1, 1), date(2025, 12, 31)) == Decimal("730.00")

    def test_yearly_cost_empty_window_is_zero(self):
        assert yearly_cost(Decimal("2.00"), None, None) == Decimal("0.00")
        assert yearly_cost(Decimal("2.00"), date(2025, 2, 1), date(2025, 1, 1)) == Decimal("0.00")

    def test_overlap_clips_to_period(self):
        window = overlap_window(
            date(2024, 6, 1), date(2025, 3, 31), date(2025, 1, 1), date(2025, 12, 31), date(2026, 1, 15)
        )
        assert window == (date(2025, 1, 1), date(2025, 3, 31))

    def test_open_ended_prescription_runs_to_as_of(self):
        window = overlap_window(
            date(2025, 1, 1), None, date(2025, 1, 1), date(2025, 12, 31), date(2025, 1, 10)
        )
        assert window == (date(2025, 1, 1), date(2025, 1, 10))

    def test_no_overlap(self):
        assert overlap_window(
            date(2024, 1, 1), date(2024, 12, 31), date(2025, 1, 1), date(2025, 12, 31), date(2026, 1, 1)
        ) is None

    def test_inactive_enrollment_is_excluded_not_zero(self):
        cost = enrollment_period_cost(
            _enrollment(is_active=False), date(2025, 1, 1), date(2025, 12, 31), date(2026, 1, 15)
        )
        assert cost is None

    def test_enrollment_without_manual_cost_is_excluded(self):
        cost = enrollment_period_cost(
            _enrollment(cost_per_day=None), date(2025, 1, 1), date(2025, 12, 31), date(2026, 1, 15)
        )
        assert cost is None

    def test_enrollment_period_cost(self):
        cost = enrollment_period_cost(
            _enrollment(), date(2025, 1, 1), date(2025, 12, 31), date(2026, 1, 15)
        )
        assert cost == Decimal("730.00")

    def test_safe_average_guards_zero(self):
        assert safe_average(Decimal("10.00"), 0) == Decimal("0.00")
        assert safe_average(Decimal("10.00"), 3) == Decimal("3.33")
