"""
Failure classification.

Classification is a pure function of the collected failure context. The
RuleBasedClassifier is deterministic (no AI/LLM dependency); model-backed
classifiers plug in through the FailureClassifier protocol.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from mindtrace.runtime.models import FailureCategory, FailureClassification

logger = structlog.get_logger(__name__)


class NetworkLogEntry(BaseModel):
    """Captured network request."""

    model_config = ConfigDict(extra="ignore")

    url: str
    method: str = "GET"
    status: int = 0


class ConsoleLogEntry(BaseModel):
    """Captured browser console message."""

    model_config = ConfigDict(extra="ignore")

    type: str = "log"
    message: str = ""


class FailureContext(BaseModel):
    """Everything collected about a failed test."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    test_name: str = Field(default="", alias="testName")
    test_file: str = Field(default="", alias="testFile")
    error_message: str = Field(default="", alias="errorMessage")
    error_stack: str | None = Field(default=None, alias="errorStack")
    expected_url: str | None = Field(default=None, alias="expectedUrl")
    actual_url: str | None = Field(default=None, alias="actualUrl")
    network_logs: list[NetworkLogEntry] = Field(default_factory=list, alias="networkLogs")
    console_logs: list[ConsoleLogEntry] = Field(default_factory=list, alias="consoleLogs")
    retry_count: int = Field(default=0, ge=0, alias="retryCount")
    passed_on_retry: bool = Field(default=False, alias="passedOnRetry")
    duration: int = 0


class FailureClassifier(Protocol):
    """Produces a classification from failure context."""

    def classify(self, context: FailureContext) -> FailureClassification:
        ...


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """A single ordered matching rule."""

    category: FailureCategory
    pattern: re.Pattern[str]
    confidence: float
    root_cause: str
    suggested_actions: tuple[str, ...]
    flaky: bool = False


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        category=FailureCategory.ENVIRONMENTAL,
        pattern=re.compile(
            r"ECONNRESET|ECONNREFUSED|ENOTFOUND|ERR_NETWORK_CHANGED|socket hang up|"
            r"net::ERR_CONNECTION|browser has been closed|Target closed",
            re.IGNORECASE,
        ),
        confidence=0.85,
        root_cause="Network or browser infrastructure was unavailable during the test",
        suggested_actions=(
            "Re-run the test to confirm the failure is environmental",
            "Check test environment health and network stability",
        ),
        flaky=True,
    ),
    ClassificationRule(
        category=FailureCategory.UNEXPECTED_MODAL,
        pattern=re.compile(r"\b(dialog|modal|popup|overlay)\b.*\b(intercept|block|obscur)", re.IGNORECASE),
        confidence=0.8,
        root_cause="An unexpected dialog or overlay blocked the interaction",
        suggested_actions=(
            "Dismiss or handle the dialog before interacting",
            "Check for newly introduced consent banners or popups",
        ),
    ),
    ClassificationRule(
        category=FailureCategory.SELECTOR_FAILED,
        pattern=re.compile(
            r"(element|locator|selector).*(not found|not attached|did not match|no element)|"
            r"waiting for (locator|selector)|strict mode violation",
            re.IGNORECASE,
        ),
        confidence=0.9,
        root_cause="The target element could not be located with the current selector",
        suggested_actions=(
            "Use selector healing to propose a stable alternative",
            "Update the page object with the new selector",
            "Prefer data-testid or role based locators",
        ),
    ),
    ClassificationRule(
        category=FailureCategory.TIMEOUT,
        pattern=re.compile(r"timeout|timed out|exceeded \d+\s*ms", re.IGNORECASE),
        confidence=0.75,
        root_cause="An operation did not complete within the configured timeout",
        suggested_actions=(
            "Add an explicit wait for the expected state",
            "Investigate slow responses in the application under test",
        ),
    ),
    ClassificationRule(
        category=FailureCategory.NAVIGATION_MISMATCH,
        pattern=re.compile(r"(expected|toHaveURL).*(url|page)|unexpected (url|navigation)", re.IGNORECASE),
        confidence=0.8,
        root_cause="The browser ended up on a different page than expected",
        suggested_actions=(
            "Verify redirects and routing for the tested flow",
            "Check authentication state before navigation",
        ),
    ),
    ClassificationRule(
        category=FailureCategory.UX_REGRESSION,
        pattern=re.compile(r"toHaveText|toBeVisible|toHaveScreenshot|screenshot.*differ", re.IGNORECASE),
        confidence=0.7,
        root_cause="Rendered content differs from the expected user experience",
        suggested_actions=(
            "Compare against the last passing screenshot",
            "Confirm whether the UI change was intentional",
        ),
    ),
    ClassificationRule(
        category=FailureCategory.TEST_LOGIC_ERROR,
        pattern=re.compile(r"TypeError|ReferenceError|SyntaxError|is not a function|undefined", re.IGNORECASE),
        confidence=0.7,
        root_cause="The test code itself raised an error",
        suggested_actions=("Fix the test implementation",),
    ),
)


# Categories a pass on retry marks as flaky
RETRY_FLAKY_CATEGORIES = frozenset({FailureCategory.ENVIRONMENTAL, FailureCategory.TIMEOUT})


class RuleBasedClassifier:
    """
    Deterministic classifier built from ordered regex rules.

    Order of evaluation:
    1. Server errors in the network log (api_error)
    2. URL mismatch between expected and actual page
    3. First matching rule over the error message and stack
    """

    def __init__(self, rules: tuple[ClassificationRule, ...] = DEFAULT_RULES) -> None:
        self._rules = rules
        self._log = logger.bind(component="rule_classifier")

    def classify(self, context: FailureContext) -> FailureClassification:
        classification = self._classify(context)

        if (
            context.passed_on_retry
            and not classification.is_flaky
            and classification.category in RETRY_FLAKY_CATEGORIES
        ):
            classification = classification.model_copy(
                update={
                    "is_flaky": True,
                    "reasoning": classification.reasoning + " Test passed on retry.",
                }
            )

        self._log.info(
            "Failure classified",
            test=context.test_name,
            category=str(classification.category),
            confidence=classification.confidence,
            is_flaky=classification.is_flaky,
        )
        return classification

    def _classify(self, context: FailureContext) -> FailureClassification:
        server_errors = [entry for entry in context.network_logs if entry.status >= 500]
        if server_errors:
            first = server_errors[0]
            return FailureClassification(
                category=FailureCategory.API_ERROR,
                confidence=0.85,
                is_flaky=False,
                root_cause=f"{first.method} {first.url} returned HTTP {first.status}",
                suggested_actions=[
                    "Check backend service logs for the failing request",
                    "Mock or stub the dependency if it is out of scope",
                ],
                reasoning=f"{len(server_errors)} request(s) failed with a server error",
            )

        if context.expected_url and context.actual_url and context.expected_url != context.actual_url:
            return FailureClassification(
                category=FailureCategory.NAVIGATION_MISMATCH,
                confidence=0.85,
                root_cause=f"Expected {context.expected_url} but landed on {context.actual_url}",
                suggested_actions=["Verify redirects and routing for the tested flow"],
                reasoning="Actual URL differs from the expected URL",
            )

        text = "\n".join(filter(None, [context.error_message, context.error_stack]))
        if not text.strip():
            return FailureClassification(
                category=FailureCategory.UNKNOWN,
                confidence=0.0,
                reasoning="No error message available",
            )

        for rule in self._rules:
            match = rule.pattern.search(text)
            if match:
                return FailureClassification(
                    category=rule.category,
                    confidence=rule.confidence,
                    is_flaky=rule.flaky,
                    root_cause=rule.root_cause,
                    suggested_actions=list(rule.suggested_actions),
                    reasoning=f"Error text matched {match.group(0)!r}",
                )

        return FailureClassification(
            category=FailureCategory.UNKNOWN,
            confidence=0.3,
            root_cause=context.error_message.splitlines()[0] if context.error_message else "",
            suggested_actions=["Inspect the trace and screenshots manually"],
            reasoning="No rule matched the error text",
        )


def classify_context(
    data: dict[str, Any], classifier: FailureClassifier | None = None
) -> FailureClassification:
    """Validate raw context data and classify it."""
    context = FailureContext.model_validate(data)
    return (classifier or RuleBasedClassifier()).classify(context)
