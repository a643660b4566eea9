"""
Filter Vocabulary Tests
"""
import pytest
import uuid
from datetime import date

from quota_drugs.core.exceptions import ValidationError
from quota_drugs.core.filters import (
    EnrollmentFilters,
    ReportFilters,
    parse_active_only,
    parse_department_filter,
    parse_iso_date,
    parse_year,
)


@pytest.mark.unit
class TestFilterParsing:
    @pytest.mark.parametrize("value", [None, "", "all", "ALL"])
    def test_all_departments_is_pass_through(self, value):
        assert parse_department_filter(value) is None

    def test_department_id(self):
        department_id = uuid.uuid4()
        assert parse_department_filter(str(department_id)) == department_id

    def test_bad_department_id(self):
        with pytest.raises(ValidationError):
            parse_department_filter("cardiology")

    def test_active_only(self):
        assert parse_active_only("true") is True
        assert parse_active_only("false") is False
        assert parse_active_only(None) is False
        with pytest.raises(ValidationError):
            parse_active_only("yes")

    def test_iso_dates_only(self):
        assert parse_iso_date("2025-02-28", "start_date") == date(2025, 2, 28)
        with pytest.raises(ValidationError):
            parse_iso_date("28/02/2025", "start_date")
        with pytest.raises(ValidationError):
            parse_iso_date("2025-02-30", "start_date")

    def test_year(self):
        assert parse_year("2025") == 2025
        assert parse_year(None) is None
        with pytest.raises(ValidationError):
            parse_year("twenty")

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            ReportFilters.from_query(start_date="2025-12-31", end_date="2025-01-01")
        with pytest.raises(ValidationError):
            EnrollmentFilters(start_date=date(2025, 2, 1), end_date=date(2025, 1, 1))

    def test_enrollment_filters_from_query(self):
        filters = EnrollmentFilters.from_query(department_id="all", active_only="true")
        assert filters.department_id is None
        assert filters.active_only is True
