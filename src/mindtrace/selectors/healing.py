"""
Selector healing against a captured page snapshot.

Uses deterministic strategies (no AI/LLM dependency):
1. Parse identifying hints (id, classes, attributes, text) from the failed selector
2. Find snapshot elements that still carry one of those hints
3. Generate alternative locators for the best matching element
4. Rank the alternatives with the SelectorRankingEngine
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterator, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from mindtrace.selectors.ranking import SelectorRankingEngine

logger = structlog.get_logger(__name__)


class SelectorStrategy(StrEnum):
    """How an alternative locator addresses the element."""

    DATA_TESTID = "data_testid"
    ROLE = "role"
    TEXT = "text"
    PLACEHOLDER = "placeholder"
    LABEL = "label"
    CSS = "css"
    XPATH = "xpath"


class ScrapedElement(BaseModel):
    """An element captured from the page DOM."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tag_name: str = Field(default="div", alias="tagName")
    id: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)
    text_content: str | None = Field(default=None, alias="textContent")
    role: str | None = None
    aria_label: str | None = Field(default=None, alias="ariaLabel")
    data_test_id: str | None = Field(default=None, alias="dataTestId")
    xpath: str | None = None
    children: list[ScrapedElement] = Field(default_factory=list)

    def attribute(self, name: str) -> str | None:
        match name:
            case "id":
                return self.id or self.attributes.get("id")
            case "data-testid":
                return self.data_test_id or self.attributes.get("data-testid")
            case "aria-label":
                return self.aria_label or self.attributes.get("aria-label")
            case "role":
                return self.role or self.attributes.get("role")
            case _:
                return self.attributes.get(name)

    @property
    def classes(self) -> list[str]:
        return self.attributes.get("class", "").split()

    @property
    def text(self) -> str:
        return " ".join((self.text_content or "").split())


class PageSnapshot(BaseModel):
    """DOM snapshot of the page where a selector failed."""

    model_config = ConfigDict(extra="ignore")

    url: str = ""
    elements: list[ScrapedElement] = Field(default_factory=list)

    def iter_elements(self) -> Iterator[ScrapedElement]:
        stack = list(reversed(self.elements))
        while stack:
            element = stack.pop()
            yield element
            stack.extend(reversed(element.children))


@dataclass(frozen=True, slots=True)
class AlternativeSelector:
    """A ranked alternative for a failed selector."""

    selector: str
    strategy: SelectorStrategy
    confidence: float
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "strategy": str(self.strategy),
            "confidence": self.confidence,
            "score": self.score,
        }


@dataclass
class HealingProposal:
    """Result of a healing attempt."""

    original_selector: str
    healed_selector: str | None = None
    confidence: float = 0.0
    strategy: SelectorStrategy | None = None
    reasoning: str = ""
    alternatives: list[AlternativeSelector] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.healed_selector is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalSelector": self.original_selector,
            "healedSelector": self.healed_selector,
            "confidence": self.confidence,
            "strategy": str(self.strategy) if self.strategy else None,
            "reasoning": self.reasoning,
            "alternatives": [alt.to_dict() for alt in self.alternatives],
        }


class SelectorHealer(Protocol):
    """Proposes a replacement for a selector that failed to resolve."""

    def heal(
        self,
        selector: str,
        snapshot: PageSnapshot,
        error_message: str | None = None,
    ) -> HealingProposal:
        ...


# (hint name, match confidence) in order of trust
_HINT_CONFIDENCE: dict[str, float] = {
    "data-testid": 0.95,
    "id": 0.9,
    "name": 0.85,
    "aria-label": 0.85,
    "placeholder": 0.8,
    "text": 0.75,
    "role": 0.6,
    "class": 0.6,
}

_ATTR_PATTERN = re.compile(r"\[([a-zA-Z-]+)[*~^$|]?=['\"]?([^'\"\]]+)['\"]?\]")
_ID_PATTERN = re.compile(r"#([a-zA-Z0-9_-]+)")
_CLASS_PATTERN = re.compile(r"\.([a-zA-Z_][a-zA-Z0-9_-]*)")
_TEXT_PATTERNS = (
    re.compile(r"^text=['\"]?([^'\"]+)['\"]?$"),
    re.compile(r"contains\(text\(\),\s*['\"]([^'\"]+)['\"]\)"),
    re.compile(r":has-text\(['\"]([^'\"]+)['\"]\)"),
)
_ROLE_PATTERN = re.compile(r"^role=([a-z]+)")
_ROLE_NAME_PATTERN = re.compile(r"\[name=['\"]([^'\"]+)['\"]\]")
_XPATH_ATTR_PATTERN = re.compile(r"@([a-zA-Z-]+)=['\"]([^'\"]+)['\"]")


def parse_selector_hints(selector: str) -> dict[str, str]:
    """Extract identifying hints from a CSS, XPath or engine-prefixed selector."""
    hints: dict[str, str] = {}

    role_match = _ROLE_PATTERN.match(selector)
    if role_match:
        hints["role"] = role_match.group(1)
        name_match = _ROLE_NAME_PATTERN.search(selector)
        if name_match:
            hints["text"] = name_match.group(1).strip()

    for pattern in _TEXT_PATTERNS:
        text_match = pattern.search(selector)
        if text_match:
            hints.setdefault("text", text_match.group(1).strip())
            break

    for match in _ATTR_PATTERN.finditer(selector):
        name, value = match.group(1), match.group(2)
        if name != "name" or "role" not in hints:
            hints[name] = value

    for match in _XPATH_ATTR_PATTERN.finditer(selector):
        hints.setdefault(match.group(1), match.group(2))

    if not selector.startswith(("role=", "text=", "/")):
        id_match = _ID_PATTERN.search(selector)
        if id_match:
            hints.setdefault("id", id_match.group(1))
        classes = _CLASS_PATTERN.findall(selector.split("[")[0])
        if classes:
            hints.setdefault("class", " ".join(classes))

    return hints


class SnapshotSelectorHealer:
    """Heals selectors by matching hints against a page snapshot."""

    MAX_ALTERNATIVES = 5

    def __init__(self, ranking: SelectorRankingEngine | None = None) -> None:
        self._ranking = ranking or SelectorRankingEngine()
        self._log = logger.bind(component="selector_healer")

    def heal(
        self,
        selector: str,
        snapshot: PageSnapshot,
        error_message: str | None = None,
    ) -> HealingProposal:
        hints = parse_selector_hints(selector)
        self._log.info(
            "Starting selector healing (deterministic)",
            original=selector,
            hints=sorted(hints),
            error=error_message,
        )

        match = self._best_match(snapshot, hints)
        if match is None:
            self._log.warning("Selector healing failed", original=selector)
            return HealingProposal(
                original_selector=selector,
                reasoning="No element in the page snapshot matches the selector's identifying hints",
            )

        element, matched_hint, match_confidence = match
        candidates = [
            (candidate, strategy)
            for candidate, strategy in self._generate_candidates(element)
            if candidate != selector
        ]
        if not candidates:
            return HealingProposal(
                original_selector=selector,
                reasoning=f"Matched <{element.tag_name}> by {matched_hint} but it has no addressable attributes",
            )

        scores = {scored.selector: scored for scored in self._ranking.rank([c for c, _ in candidates])}
        ranked = sorted(
            candidates,
            key=lambda item: scores[item[0]].score,
            reverse=True,
        )

        alternatives = [
            AlternativeSelector(
                selector=candidate,
                strategy=strategy,
                confidence=round(match_confidence * scores[candidate].score / 100, 3),
                score=scores[candidate].score,
            )
            for candidate, strategy in ranked
        ]
        best = alternatives[0]

        self._log.info(
            "Selector healed",
            original=selector,
            healed=best.selector,
            strategy=str(best.strategy),
            confidence=best.confidence,
        )
        return HealingProposal(
            original_selector=selector,
            healed_selector=best.selector,
            confidence=best.confidence,
            strategy=best.strategy,
            reasoning=(
                f"Matched <{element.tag_name}> by {matched_hint}; "
                f"{best.strategy} locator ranked {scores[best.selector].recommendation}"
            ),
            alternatives=alternatives[1 : self.MAX_ALTERNATIVES + 1],
        )

    def _best_match(
        self, snapshot: PageSnapshot, hints: dict[str, str]
    ) -> tuple[ScrapedElement, str, float] | None:
        best: tuple[ScrapedElement, str, float] | None = None

        for element in snapshot.iter_elements():
            for hint, confidence in _HINT_CONFIDENCE.items():
                if hint not in hints or not self._matches(element, hint, hints[hint]):
                    continue
                if best is None or confidence > best[2]:
                    best = (element, hint, confidence)
                break

        return best

    @staticmethod
    def _matches(element: ScrapedElement, hint: str, value: str) -> bool:
        match hint:
            case "text":
                return element.text.lower() == value.lower()
            case "class":
                wanted = set(value.split())
                return bool(wanted) and wanted.issubset(element.classes)
            case _:
                actual = element.attribute(hint)
                return actual is not None and actual == value

    @staticmethod
    def _generate_candidates(element: ScrapedElement) -> list[tuple[str, SelectorStrategy]]:
        candidates: list[tuple[str, SelectorStrategy]] = []
        text = element.text

        test_id = element.attribute("data-testid")
        if test_id:
            candidates.append((f'[data-testid="{test_id}"]', SelectorStrategy.DATA_TESTID))

        role = element.attribute("role")
        if role and text:
            candidates.append((f'role={role}[name="{text}"]', SelectorStrategy.ROLE))

        label = element.attribute("aria-label")
        if label:
            candidates.append((f'[aria-label="{label}"]', SelectorStrategy.LABEL))

        placeholder = element.attribute("placeholder")
        if placeholder:
            candidates.append((f'[placeholder="{placeholder}"]', SelectorStrategy.PLACEHOLDER))

        if text and len(text) <= 80:
            candidates.append((f"text={text}", SelectorStrategy.TEXT))

        element_id = element.attribute("id")
        if element_id:
            candidates.append((f"#{element_id}", SelectorStrategy.CSS))

        if element.classes:
            candidates.append((f"{element.tag_name}.{'.'.join(element.classes[:2])}", SelectorStrategy.CSS))

        if element.xpath:
            candidates.append((element.xpath, SelectorStrategy.XPATH))
        elif element_id:
            candidates.append((f"//{element.tag_name}[@id='{element_id}']", SelectorStrategy.XPATH))

        return candidates
