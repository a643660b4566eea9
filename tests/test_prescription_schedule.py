"""
Duration and End Date Reconciliation Tests
"""
import pytest
from datetime import date

from quota_drugs.core.exceptions import ValidationError
from quota_drugs.services.prescription_schedule import reconcile_schedule

START = date(2025, 3, 1)


@pytest.mark.unit
class TestReconcileSchedule:
    def test_duration_drives_end_date(self):
        assert reconcile_schedule(START, None, 30, end_date_edited=False) == (date(2025, 3, 31), 30)

    def test_end_date_drives_duration(self):
        assert reconcile_schedule(START, date(2025, 4, 15), 30, end_date_edited=True) == (
            date(2025, 4, 15),
            45,
        )

    def test_round_trip_is_idempotent(self):
        end, duration = reconcile_schedule(START, None, 60, end_date_edited=False)
        end, duration = reconcile_schedule(START, date(2025, 5, 10), duration, end_date_edited=True)
        again = reconcile_schedule(START, end, duration, end_date_edited=True)
        assert (end, duration) == again == (date(2025, 5, 10), 70)

    def test_clearing_end_date_makes_prescription_open_ended(self):
        assert reconcile_schedule(START, None, 30, end_date_edited=True) == (None, None)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            reconcile_schedule(START, date(2025, 2, 1), None, end_date_edited=True)
        assert exc_info.value.field == "prescription_end_date"

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            reconcile_schedule(START, None, -1, end_date_edited=False)

    def test_duration_needs_a_start_date(self):
        with pytest.raises(ValidationError):
            reconcile_schedule(None, None, 30, end_date_edited=False)

    def test_both_dates_without_duration_fill_it_in(self):
        assert reconcile_schedule(START, date(2025, 3, 11), None, end_date_edited=False) == (
            date(2025, 3, 11),
            10,
        )
