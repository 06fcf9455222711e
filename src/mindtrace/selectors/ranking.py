"""
Selector ranking engine.

Ranks locator strings by stability, specificity, maintainability and
performance using fixed rules. Pure and deterministic: identical input
always yields identical output.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Recommendation(StrEnum):
    """Recommendation tier derived from the overall score."""

    EXCELLENT = "excellent"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"


WEIGHTS: dict[str, float] = {
    "stability": 0.40,
    "specificity": 0.20,
    "maintainability": 0.25,
    "performance": 0.15,
}

_TEXT_PREFIX = re.compile(r"^text=")
_CLASS_PREFIX = re.compile(r"^\.")
_ID_PREFIX = re.compile(r"^#")


@dataclass(frozen=True, slots=True)
class SelectorScore:
    """Score breakdown for one selector."""

    selector: str
    stability: float
    specificity: float
    maintainability: float
    performance: float
    score: float
    recommendation: Recommendation

    @property
    def factors(self) -> dict[str, float]:
        return {
            "stability": self.stability,
            "specificity": self.specificity,
            "maintainability": self.maintainability,
            "performance": self.performance,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "score": self.score,
            "factors": self.factors,
            "recommendation": str(self.recommendation),
        }


def _is_test_id(selector: str) -> bool:
    return "[data-testid=" in selector


def calculate_stability(selector: str) -> float:
    if _is_test_id(selector):
        return 100
    if selector.startswith("role="):
        return 90
    if "[aria-label=" in selector:
        return 80
    if _TEXT_PREFIX.match(selector):
        return 70
    if _CLASS_PREFIX.match(selector):
        return 40
    if _ID_PREFIX.match(selector):
        return 30
    if "nth-child" in selector:
        return 20
    return 50


def calculate_specificity(selector: str) -> float:
    # Segments are space separated; a bare selector counts as one.
    parts = len(selector.split(" "))
    return max(0, 100 - parts * 10)


def calculate_maintainability(selector: str) -> float:
    if _is_test_id(selector):
        return 100
    if len(selector) < 50:
        return 80
    if len(selector) < 100:
        return 60
    return 40


def calculate_performance(selector: str) -> float:
    if _ID_PREFIX.match(selector):
        return 100
    if _is_test_id(selector):
        return 90
    if _CLASS_PREFIX.match(selector):
        return 70
    if "//" in selector:
        return 30
    return 60


def recommendation_for(score: float) -> Recommendation:
    if score >= 85:
        return Recommendation.EXCELLENT
    if score >= 70:
        return Recommendation.GOOD
    if score >= 50:
        return Recommendation.ACCEPTABLE
    return Recommendation.POOR


class SelectorRankingEngine:
    """Scores candidate selectors; holds no state between calls."""

    def score(self, selector: str) -> SelectorScore:
        factors = {
            "stability": calculate_stability(selector),
            "specificity": calculate_specificity(selector),
            "maintainability": calculate_maintainability(selector),
            "performance": calculate_performance(selector),
        }
        overall = round(sum(factors[key] * weight for key, weight in WEIGHTS.items()), 2)

        return SelectorScore(
            selector=selector,
            score=overall,
            recommendation=recommendation_for(overall),
            **factors,
        )

    def rank(self, selectors: list[str]) -> list[SelectorScore]:
        """Score each selector, preserving input order."""
        return [self.score(selector) for selector in selectors]

    def best(self, selectors: list[str]) -> SelectorScore | None:
        """Highest scored selector; ties keep the earliest input."""
        best: SelectorScore | None = None
        for scored in self.rank(selectors):
            if best is None or scored.score > best.score:
                best = scored
        return best


def rank_selectors(selectors: list[str]) -> list[dict[str, Any]]:
    """Rank selectors and return plain dictionaries."""
    return [scored.to_dict() for scored in SelectorRankingEngine().rank(selectors)]

