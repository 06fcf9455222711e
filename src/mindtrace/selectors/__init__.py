"""
Selector ranking and healing.

Deterministic (no AI/LLM dependency): identical input always yields the
same ranking and the same healing proposal.
"""

from mindtrace.selectors.healing import (
    AlternativeSelector,
    HealingProposal,
    PageSnapshot,
    ScrapedElement,
    SelectorHealer,
    SelectorStrategy,
    SnapshotSelectorHealer,
    parse_selector_hints,
)
from mindtrace.selectors.ranking import (
    Recommendation,
    SelectorRankingEngine,
    SelectorScore,
    rank_selectors,
)

__all__ = [
    # Ranking
    "Recommendation",
    "SelectorRankingEngine",
    "SelectorScore",
    "rank_selectors",
    # Healing
    "AlternativeSelector",
    "HealingProposal",
    "PageSnapshot",
    "ScrapedElement",
    "SelectorHealer",
    "SelectorStrategy",
    "SnapshotSelectorHealer",
    "parse_selector_hints",
]
