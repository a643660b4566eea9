"""
Quota Accounting Tests
"""
import pytest
import uuid
from types import SimpleNamespace

from quota_drugs.services.quota_calc import (
    LIST_UTILIZATION_POLICY,
    REPORT_UTILIZATION_POLICY,
    combine_quota_statuses,
    compute_quota_status,
    quota_status_from_counts,
    utilization_percentage,
)


def _drug(quota):
    return SimpleNamespace(id=uuid.uuid4(), quota_number=quota)


def _enrollments(drug, active, inactive=0):
    rows = [SimpleNamespace(drug_id=drug.id, is_active=True) for _ in range(active)]
    rows += [SimpleNamespace(drug_id=drug.id, is_active=False) for _ in range(inactive)]
    return rows


@pytest.mark.unit
class TestComputeQuotaStatus:
    def test_counts_only_active_enrollments_of_the_drug(self):
        drug = _drug(10)
        other = _drug(10)
        enrollments = _enrollments(drug, 3, inactive=4) + _enrollments(other, 5)

        status = compute_quota_status(drug, enrollments)

        assert status.active == 3
        assert status.available == 7
        assert status.utilization_pct == 30

    @pytest.mark.parametrize("quota, active", [(0, 0), (5, 0), (5, 3), (5, 5), (3, 7)])
    def test_active_plus_available_equals_quota(self, quota, active):
        drug = _drug(quota)
        status = compute_quota_status(drug, _enrollments(drug, active))
        assert status.active + status.available == quota

    def test_over_enrollment_goes_negative_without_error(self):
        drug = _drug(2)
        status = compute_quota_status(drug, _enrollments(drug, 3))
        assert status.available == -1
        assert status.utilization_pct == 150
        assert status.tier == "FULL"
        assert status.is_full

    def test_zero_quota_is_zero_percent(self):
        drug = _drug(0)
        status = compute_quota_status(drug, _enrollments(drug, 2))
        assert status.utilization_pct == 0
        assert status.tier == "LOW"

    def test_percentage_rounds_half_up(self):
        assert utilization_percentage(1, 8) == 13
        assert utilization_percentage(1, 3) == 33
        assert utilization_percentage(2, 3) == 67


@pytest.mark.unit
class TestUtilizationPolicies:
    @pytest.mark.parametrize(
        "active, tier, color",
        [(10, "FULL", "red"), (8, "HIGH", "orange"), (5, "MEDIUM", "blue"), (4, "LOW", "green")],
    )
    def test_list_policy_thresholds(self, active, tier, color):
        status = quota_status_from_counts(10, active, LIST_UTILIZATION_POLICY)
        assert (status.tier, status.color) == (tier, color)

    @pytest.mark.parametrize(
        "active, color",
        [(9, "red"), (8, "orange"), (75, "orange"), (7, "green")],
    )
    def test_report_policy_thresholds(self, active, color):
        quota = 100 if active == 75 else 10
        status = quota_status_from_counts(quota, active, REPORT_UTILIZATION_POLICY)
        assert status.color == color

    def test_policies_disagree_at_ninety_percent(self):
        listed = quota_status_from_counts(10, 9, LIST_UTILIZATION_POLICY)
        reported = quota_status_from_counts(10, 9, REPORT_UTILIZATION_POLICY)
        assert listed.color == "orange"
        assert reported.color == "red"

    def test_tier_uses_exact_ratio_not_rounded_percentage(self):
        # 199/200 displays as 100% but is below the 100% cut
        status = quota_status_from_counts(200, 199, LIST_UTILIZATION_POLICY)
        assert status.utilization_pct == 100
        assert status.tier == "HIGH"

    def test_combined_status_sums_quotas(self):
        combined = combine_quota_statuses(
            [quota_status_from_counts(4, 4), quota_status_from_counts(6, 2)]
        )
        assert combined.quota_number == 10
        assert combined.active == 6
        assert combined.available == 4
        assert combined.utilization_pct == 60
        assert combined.color == "green"
