"""
Governance gate: turns a test runner exit code into a CI verdict.

The gate reads the persisted classification on every call and delegates the
pass/fail rule to a GovernancePolicy, so stricter policies can be swapped in
without touching the rest of the pipeline.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from mindtrace.runtime.artifacts import ArtifactStore
from mindtrace.runtime.errors import GovernanceFailure
from mindtrace.runtime.layout import RunLayout
from mindtrace.runtime.models import FailureCategory, FailureClassification, GovernanceVerdict

logger = structlog.get_logger(__name__)


class GovernancePolicy(Protocol):
    """Decides whether a run passes."""

    name: str

    def is_exempt(self, classification: FailureClassification | None) -> bool:
        """Whether a nonzero exit code should be exempted for this classification."""
        ...


class FlakyExemptionPolicy:
    """
    Default policy: a failure passes only if it is classified as flaky.

    A missing classification is never exempt (fail closed).
    """

    name = "flaky-exemption"

    def is_exempt(self, classification: FailureClassification | None) -> bool:
        if classification is None:
            return False
        return classification.is_flaky


class ConfidenceThresholdPolicy:
    """Flaky exemption that only applies above a minimum classifier confidence."""

    name = "confidence-threshold"

    def __init__(self, min_confidence: float = 0.8) -> None:
        if not 0.0 <= min_confidence <= 1.0:
            raise ValueError("min_confidence must be between 0 and 1")
        self.min_confidence = min_confidence

    def is_exempt(self, classification: FailureClassification | None) -> bool:
        if classification is None:
            return False
        return classification.is_flaky and classification.confidence >= self.min_confidence


class CategoryAllowListPolicy:
    """Failures in allow-listed categories pass, as do flaky ones."""

    name = "category-allow-list"

    def __init__(self, categories: set[FailureCategory] | frozenset[FailureCategory]) -> None:
        self.categories = frozenset(categories)

    def is_exempt(self, classification: FailureClassification | None) -> bool:
        if classification is None:
            return False
        return classification.is_flaky or classification.category in self.categories


class GovernanceGate:
    """Single policy point between raw exit status and CI verdict."""

    def __init__(
        self,
        policy: GovernancePolicy | None = None,
        store: ArtifactStore | None = None,
    ) -> None:
        self._policy = policy or FlakyExemptionPolicy()
        self._store = store or ArtifactStore()
        self._log = logger.bind(component="governance_gate", policy=self._policy.name)

    @property
    def policy(self) -> GovernancePolicy:
        return self._policy

    def evaluate(self, layout: RunLayout, exit_code: int) -> GovernanceVerdict:
        """Compute the verdict without raising."""
        classification = self._store.read_classification(layout)
        is_flaky = classification.is_flaky if classification is not None else False

        if exit_code == 0:
            passed = True
        else:
            passed = self._policy.is_exempt(classification)

        verdict = GovernanceVerdict(
            exit_code=exit_code,
            is_flaky=is_flaky,
            passed=passed,
            policy=self._policy.name,
            classification_present=classification is not None,
        )
        self._log.info(
            "Governance verdict",
            run=layout.run_name,
            exit_code=exit_code,
            is_flaky=is_flaky,
            passed=passed,
        )
        return verdict

    def decide(self, layout: RunLayout, exit_code: int) -> GovernanceVerdict:
        """
        Apply the gate.

        Raises:
            GovernanceFailure: If the run does not pass
        """
        verdict = self.evaluate(layout, exit_code)
        if not verdict.passed:
            self._log.warning("Governance gate failed", run=layout.run_name, exit_code=exit_code)
            raise GovernanceFailure(verdict)
        return verdict
