"""
Run governance runtime.

Post-processes a finished test run:
- Per-run directory layout
- Write-once diagnostic artifacts with validation
- Governance gate with pluggable flaky-exemption policy
- Hash-chained audit trail
- Append-only history index and report rendering
"""

from mindtrace.runtime.artifacts import ArtifactKind, ArtifactSpec, ArtifactStore
from mindtrace.runtime.audit import AuditTrail, ChainVerification
from mindtrace.runtime.classifier import (
    FailureClassifier,
    FailureContext,
    RuleBasedClassifier,
    classify_context,
)
from mindtrace.runtime.errors import (
    AuditTrailError,
    GovernanceFailure,
    InvalidArtifactFormatError,
    InvalidRunNameError,
    MindTraceError,
    MissingArtifactError,
    PipelineError,
)
from mindtrace.runtime.governance import (
    CategoryAllowListPolicy,
    ConfidenceThresholdPolicy,
    FlakyExemptionPolicy,
    GovernanceGate,
    GovernancePolicy,
)
from mindtrace.runtime.history import HistoryIndex
from mindtrace.runtime.layout import RunLayout, resolve_run_layout, validate_run_name
from mindtrace.runtime.models import (
    AuditEvent,
    AuditFinal,
    FailureCategory,
    FailureClassification,
    GovernanceVerdict,
    HistoryRecord,
)
from mindtrace.runtime.pipeline import PipelineResult, RunPipeline, run_pipeline
from mindtrace.runtime.report import ReportBundler, ReportFormat

__all__ = [
    # Layout
    "RunLayout",
    "resolve_run_layout",
    "validate_run_name",
    # Artifacts
    "ArtifactKind",
    "ArtifactSpec",
    "ArtifactStore",
    # Governance
    "CategoryAllowListPolicy",
    "ConfidenceThresholdPolicy",
    "FlakyExemptionPolicy",
    "GovernanceGate",
    "GovernancePolicy",
    # Audit, history, report
    "AuditTrail",
    "ChainVerification",
    "HistoryIndex",
    "ReportBundler",
    "ReportFormat",
    # Classification
    "FailureClassifier",
    "FailureContext",
    "RuleBasedClassifier",
    "classify_context",
    # Pipeline
    "PipelineResult",
    "RunPipeline",
    "run_pipeline",
    # Models
    "AuditEvent",
    "AuditFinal",
    "FailureCategory",
    "FailureClassification",
    "GovernanceVerdict",
    "HistoryRecord",
    # Errors
    "AuditTrailError",
    "GovernanceFailure",
    "InvalidArtifactFormatError",
    "InvalidRunNameError",
    "MindTraceError",
    "MissingArtifactError",
    "PipelineError",
]
