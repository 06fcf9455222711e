"""
Exception hierarchy for the run governance pipeline.

Infrastructure faults derive from PipelineError so callers can tell
"the pipeline broke" apart from GovernanceFailure ("tests failed").
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mindtrace.runtime.models import GovernanceVerdict


class MindTraceError(Exception):
    """Base class for all MindTrace errors."""

    pass


class PipelineError(MindTraceError):
    """Raised when a pipeline stage cannot complete."""

    pass


class InvalidRunNameError(MindTraceError, ValueError):
    """Raised when a run name cannot be used as a path segment."""

    def __init__(self, run_name: str, reason: str) -> None:
        self.run_name = run_name
        self.reason = reason
        super().__init__(f"Invalid run name {run_name!r}: {reason}")


class MissingArtifactError(PipelineError):
    """Raised when a required artifact is absent."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Missing required artifact: {path}")


class InvalidArtifactFormatError(PipelineError):
    """Raised when a structured artifact is not well-formed JSON."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid JSON artifact: {path} ({reason})")


class AuditTrailError(PipelineError, OSError):
    """Raised when the audit trail cannot be written."""

    pass


class GovernanceFailure(MindTraceError):
    """Raised when the governance gate rejects a run."""

    def __init__(self, verdict: GovernanceVerdict) -> None:
        self.verdict = verdict
        self.exit_code = verdict.exit_code
        self.is_flaky = verdict.is_flaky
        super().__init__(
            f"Governance gate failed: exitCode={verdict.exit_code}, isFlaky={verdict.is_flaky}"
        )
