"""Tests for the governance gate and its policies."""

from __future__ import annotations

import pytest

from mindtrace.runtime.errors import GovernanceFailure
from mindtrace.runtime.governance import (
    CategoryAllowListPolicy,
    ConfidenceThresholdPolicy,
    FlakyExemptionPolicy,
    GovernanceGate,
)
from mindtrace.runtime.layout import RunLayout
from mindtrace.runtime.models import FailureCategory, FailureClassification


class TestGovernanceGate:
    """Tests for GovernanceGate.decide with the default policy."""

    def test_exit_zero_always_passes(self, layout: RunLayout, write_classification) -> None:
        """Test that a passing run passes regardless of classification."""
        gate = GovernanceGate()
        assert gate.decide(layout, 0).passed

        write_classification(isFlaky=False, category="api_error")
        verdict = gate.decide(layout, 0)
        assert verdict.passed
        assert verdict.exit_code == 0

    def test_flaky_failure_passes(self, layout: RunLayout, write_classification) -> None:
        """Test that a failure classified as flaky is exempted."""
        write_classification(isFlaky=True)
        verdict = GovernanceGate().decide(layout, 1)

        assert verdict.passed
        assert verdict.is_flaky

    def test_real_failure_fails(self, layout: RunLayout, write_classification) -> None:
        """Test that a non-flaky failure raises GovernanceFailure."""
        write_classification(isFlaky=False)

        with pytest.raises(GovernanceFailure) as exc_info:
            GovernanceGate().decide(layout, 1)

        assert exc_info.value.exit_code == 1
        assert exc_info.value.is_flaky is False
        assert not exc_info.value.verdict.passed

    def test_absent_classification_fails_closed(self, layout: RunLayout) -> None:
        """Test that a failure without classification is never exempted."""
        with pytest.raises(GovernanceFailure) as exc_info:
            GovernanceGate().decide(layout, 1)

        assert exc_info.value.verdict.classification_present is False

    def test_unreadable_classification_fails_closed(
        self, layout: RunLayout, write_classification
    ) -> None:
        """Test that a corrupt classification counts as absent."""
        path = write_classification(isFlaky=True)
        path.write_text("{truncated")

        with pytest.raises(GovernanceFailure):
            GovernanceGate().decide(layout, 2)

    def test_reads_classification_on_every_call(
        self, layout: RunLayout, write_classification
    ) -> None:
        """Test that the gate sees classification changes between calls."""
        gate = GovernanceGate()
        write_classification(isFlaky=False)
        assert not gate.evaluate(layout, 1).passed

        write_classification(isFlaky=True)
        assert gate.evaluate(layout, 1).passed

    def test_evaluate_does_not_raise(self, layout: RunLayout) -> None:
        """Test that evaluate reports the verdict without raising."""
        verdict = GovernanceGate().evaluate(layout, 3)

        assert verdict.passed is False
        assert verdict.to_dict() == {
            "exitCode": 3,
            "isFlaky": False,
            "passed": False,
            "policy": "flaky-exemption",
            "classificationPresent": False,
        }


class TestPolicies:
    """Tests for the pluggable governance policies."""

    def test_flaky_exemption(self) -> None:
        """Test the default policy."""
        policy = FlakyExemptionPolicy()
        assert policy.is_exempt(None) is False
        assert policy.is_exempt(FailureClassification(is_flaky=True)) is True
        assert policy.is_exempt(FailureClassification(is_flaky=False)) is False

    def test_confidence_threshold(self) -> None:
        """Test flaky exemption only above the minimum confidence."""
        policy = ConfidenceThresholdPolicy(min_confidence=0.8)

        assert policy.is_exempt(FailureClassification(is_flaky=True, confidence=0.9))
        assert not policy.is_exempt(FailureClassification(is_flaky=True, confidence=0.5))
        assert not policy.is_exempt(None)

    def test_confidence_threshold_range(self) -> None:
        """Test that the threshold must be a probability."""
        with pytest.raises(ValueError, match="between 0 and 1"):
            ConfidenceThresholdPolicy(min_confidence=1.5)

    def test_category_allow_list(self, layout: RunLayout, write_classification) -> None:
        """Test allow-listed categories pass through the gate."""
        gate = GovernanceGate(policy=CategoryAllowListPolicy({FailureCategory.UX_REGRESSION}))

        write_classification(category="ux_regression", isFlaky=False)
        verdict = gate.decide(layout, 1)
        assert verdict.passed
        assert verdict.policy == "category-allow-list"

        write_classification(category="api_error", isFlaky=False)
        with pytest.raises(GovernanceFailure):
            gate.decide(layout, 1)
