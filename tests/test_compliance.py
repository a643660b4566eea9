"""
Refill Compliance Tests
"""
import pytest
from datetime import date, timedelta
from types import SimpleNamespace

from quota_drugs.services.compliance import RefillTag, classify, is_potential_defaulter

AS_OF = date(2026, 1, 15)


def _enrollment(days_ago=None, is_active=True, spub=False):
    refill = AS_OF - timedelta(days=days_ago) if days_ago is not None else None
    return SimpleNamespace(is_active=is_active, spub=spub, latest_refill_date=refill)


@pytest.mark.unit
class TestClassify:
    def test_never_refilled(self):
        status = classify(_enrollment(), AS_OF)
        assert status.days_since_refill is None
        assert status.refill_tag is RefillTag.NEVER
        assert status.refill_color == "orange"
        assert status.never_refilled
        assert not status.is_potential_defaulter

    @pytest.mark.parametrize(
        "days, tag, color",
        [
            (0, RefillTag.CURRENT, "green"),
            (90, RefillTag.CURRENT, "green"),
            (91, RefillTag.DUE_SOON, "orange"),
            (180, RefillTag.DUE_SOON, "orange"),
            (181, RefillTag.OVERDUE, "red"),
        ],
    )
    def test_refill_tag_boundaries(self, days, tag, color):
        status = classify(_enrollment(days), AS_OF)
        assert status.days_since_refill == days
        assert status.refill_tag is tag
        assert status.refill_color == color

    def test_overdue_active_enrollment_is_potential_defaulter(self):
        assert is_potential_defaulter(_enrollment(181), AS_OF)

    def test_180_days_is_not_yet_a_defaulter(self):
        assert not is_potential_defaulter(_enrollment(180), AS_OF)

    def test_spub_is_exempt(self):
        assert not is_potential_defaulter(_enrollment(300, spub=True), AS_OF)
        assert is_potential_defaulter(_enrollment(300, spub=False), AS_OF)

    def test_inactive_is_never_a_defaulter(self):
        status = classify(_enrollment(1000, is_active=False), AS_OF)
        assert status.refill_tag is RefillTag.OVERDUE
        assert not status.is_potential_defaulter

    def test_result_depends_on_as_of(self):
        enrollment = _enrollment(100)
        assert not is_potential_defaulter(enrollment, AS_OF)
        assert is_potential_defaulter(enrollment, AS_OF + timedelta(days=81))
