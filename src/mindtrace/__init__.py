"""
MindTrace run governance.

Post-processes automated browser test runs: per-run evidence layout,
write-once diagnostic artifacts, a flaky-aware governance gate, a
hash-chained audit trail, an append-only history index, report rendering,
and deterministic selector ranking and healing.
"""

__version__ = "1.0.0"

from mindtrace.config import FrameworkStyle, MindTraceSettings, load_settings
from mindtrace.runtime import (
    ArtifactStore,
    AuditTrail,
    FailureCategory,
    FailureClassification,
    GovernanceFailure,
    GovernanceGate,
    HistoryIndex,
    PipelineError,
    PipelineResult,
    ReportBundler,
    RuleBasedClassifier,
    RunLayout,
    resolve_run_layout,
    run_pipeline,
)
from mindtrace.selectors import (
    PageSnapshot,
    SelectorRankingEngine,
    SnapshotSelectorHealer,
    rank_selectors,
)

__all__ = [
    "__version__",
    # Configuration
    "FrameworkStyle",
    "MindTraceSettings",
    "load_settings",
    # Runtime
    "ArtifactStore",
    "AuditTrail",
    "FailureCategory",
    "FailureClassification",
    "GovernanceFailure",
    "GovernanceGate",
    "HistoryIndex",
    "PipelineError",
    "PipelineResult",
    "ReportBundler",
    "RuleBasedClassifier",
    "RunLayout",
    "resolve_run_layout",
    "run_pipeline",
    # Selectors
    "PageSnapshot",
    "SelectorRankingEngine",
    "SnapshotSelectorHealer",
    "rank_selectors",
]
