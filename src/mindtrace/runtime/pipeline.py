"""
Run governance pipeline.

Executes the post-run stages for one run, strictly in order:
layout -> artifacts -> validation -> governance -> audit -> history -> report.

A rejected run still leaves its audit, history and report behind: the
GovernanceFailure is held until the later stages complete and re-raised
afterwards. Any other stage error aborts the pipeline immediately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from mindtrace.runtime.artifacts import ArtifactStore
from mindtrace.runtime.audit import AuditTrail
from mindtrace.runtime.errors import GovernanceFailure
from mindtrace.runtime.governance import GovernanceGate, GovernancePolicy
from mindtrace.runtime.history import HistoryIndex
from mindtrace.runtime.layout import RunLayout, resolve_run_layout
from mindtrace.runtime.models import AuditFinal, GovernanceVerdict, HistoryRecord
from mindtrace.runtime.report import ReportBundler, ReportFormat

logger = structlog.get_logger(__name__)

ARTIFACTS_EVENT = "artifacts"
GOVERNANCE_EVENT = "governance"


@dataclass
class PipelineResult:
    """Everything a pipeline invocation produced."""

    layout: RunLayout
    verdict: GovernanceVerdict
    audit: AuditFinal
    history: HistoryRecord
    report_path: Path
    created_artifacts: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.verdict.passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "runName": self.layout.run_name,
            "runRoot": str(self.layout.run_root),
            "createdArtifacts": self.created_artifacts,
            "verdict": self.verdict.to_dict(),
            "audit": self.audit.to_dict(),
            "history": self.history.to_dict(),
            "reportPath": str(self.report_path),
        }


class RunPipeline:
    """Wires the pipeline stages together over a shared ArtifactStore."""

    def __init__(
        self,
        store: ArtifactStore | None = None,
        policy: GovernancePolicy | None = None,
    ) -> None:
        self.store = store or ArtifactStore()
        self.gate = GovernanceGate(policy=policy, store=self.store)
        self.audit = AuditTrail()
        self.history = HistoryIndex(store=self.store)
        self.reports = ReportBundler(store=self.store)
        self._log = logger.bind(component="pipeline")

    def run(
        self,
        base_dir: str | Path,
        run_name: str,
        exit_code: int,
        output_dir: str | Path | None = None,
        fmt: ReportFormat | str = ReportFormat.MARKDOWN,
    ) -> PipelineResult:
        """
        Execute every stage for one run.

        Raises:
            InvalidRunNameError: If run_name is not a safe path segment
            MissingArtifactError: If validation finds an absent artifact
            InvalidArtifactFormatError: If a JSON artifact is malformed
            AuditTrailError: If the audit trail cannot be written
            GovernanceFailure: After all stages ran, if the gate rejected the run
        """
        log = self._log.bind(run=run_name, exit_code=exit_code)
        log.info("Pipeline started")

        layout = resolve_run_layout(base_dir, run_name)

        created = self.store.ensure_default_artifacts(layout)
        self.audit.record(layout, run_name, ARTIFACTS_EVENT, {"created": created})

        self.store.validate(layout)

        verdict = self.gate.evaluate(layout, exit_code)
        self.audit.record(layout, run_name, GOVERNANCE_EVENT, verdict.to_dict())

        audit_final = self.audit.finalize(layout, run_name)
        history_record = self.history.append(layout, run_name)
        report_path = self.reports.render(layout, run_name, output_dir=output_dir, fmt=fmt)

        result = PipelineResult(
            layout=layout,
            verdict=verdict,
            audit=audit_final,
            history=history_record,
            report_path=report_path,
            created_artifacts=created,
        )

        if not verdict.passed:
            log.warning("Pipeline completed with governance failure", is_flaky=verdict.is_flaky)
            raise GovernanceFailure(verdict)

        log.info("Pipeline completed", report=str(report_path))
        return result


def run_pipeline(
    base_dir: str | Path,
    run_name: str,
    exit_code: int,
    output_dir: str | Path | None = None,
    fmt: ReportFormat | str = ReportFormat.MARKDOWN,
    policy: GovernancePolicy | None = None,
) -> PipelineResult:
    """Run the full governance pipeline with default components."""
    return RunPipeline(policy=policy).run(
        base_dir, run_name, exit_code, output_dir=output_dir, fmt=fmt
    )
