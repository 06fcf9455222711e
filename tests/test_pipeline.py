"""Tests for the run governance pipeline."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mindtrace.runtime.artifacts import EXECUTION_TRACE_MAP, ROOT_CAUSE_SUMMARY
from mindtrace.runtime.audit import AuditTrail
from mindtrace.runtime.errors import (
    GovernanceFailure,
    InvalidArtifactFormatError,
    InvalidRunNameError,
)
from mindtrace.runtime.history import HistoryIndex
from mindtrace.runtime.layout import RunLayout, history_index_path
from mindtrace.runtime.pipeline import GOVERNANCE_EVENT, RunPipeline, run_pipeline
from mindtrace.runtime.report import ReportFormat


class TestRunPipeline:
    """Tests for RunPipeline."""

    def test_passing_run(self, temp_dir: Path) -> None:
        """Test every stage runs and leaves its output behind."""
        result = run_pipeline(temp_dir, "ci-1", exit_code=0)

        assert result.passed
        assert result.layout.run_root == temp_dir.resolve() / "runs" / "ci-1"
        assert len(result.created_artifacts) == 4
        assert result.audit.chain_valid
        assert result.history.run_name == "ci-1"
        assert result.history.category == "none"
        assert result.report_path.is_file()
        assert result.to_dict()["verdict"]["passed"] is True

    def test_events_recorded_in_stage_order(self, temp_dir: Path) -> None:
        """Test the audit trail lists artifacts, governance then finalize."""
        result = RunPipeline().run(temp_dir, "ci-1", exit_code=0)

        events = AuditTrail().read_events(result.layout)
        assert [event.type for event in events] == ["artifacts", "governance", "finalize"]
        assert events[1].payload["passed"] is True

    def test_failing_run_still_writes_outputs(self, temp_dir: Path) -> None:
        """Test a rejected run keeps its audit, history and report."""
        pipeline = RunPipeline()

        with pytest.raises(GovernanceFailure) as exc_info:
            pipeline.run(temp_dir, "ci-2", exit_code=1)

        assert exc_info.value.exit_code == 1
        assert not exc_info.value.is_flaky

        history = HistoryIndex().read_records(history_index_path(temp_dir))
        assert [record.run_name for record in history] == ["ci-2"]
        assert (temp_dir / "runs" / "ci-2" / "audit" / "final.json").is_file()
        assert (temp_dir / "reports" / "report-ci-2.md").is_file()

    def test_flaky_failure_passes(self, temp_dir: Path, layout: RunLayout, write_classification) -> None:
        """Test a failing run classified as flaky passes the gate."""
        write_classification(isFlaky=True)

        result = run_pipeline(temp_dir, "ci-123", exit_code=1)

        assert result.passed
        assert result.verdict.is_flaky
        assert ROOT_CAUSE_SUMMARY not in result.created_artifacts

    def test_governance_event_records_rejection(self, temp_dir: Path, layout: RunLayout, write_classification) -> None:
        """Test the rejected verdict is in the audit trail."""
        write_classification()

        with pytest.raises(GovernanceFailure):
            RunPipeline().run(temp_dir, "ci-123", exit_code=2)

        events = AuditTrail().read_events(layout)
        governance = [event for event in events if event.type == GOVERNANCE_EVENT]
        assert governance[0].payload == {
            "exitCode": 2,
            "isFlaky": False,
            "passed": False,
            "policy": "flaky-exemption",
            "classificationPresent": True,
        }

    def test_invalid_artifact_aborts(self, temp_dir: Path, layout: RunLayout) -> None:
        """Test malformed JSON stops the pipeline before governance."""
        layout.artifact_path(EXECUTION_TRACE_MAP).write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidArtifactFormatError):
            RunPipeline().run(temp_dir, "ci-123", exit_code=0)

        events = AuditTrail().read_events(layout)
        assert GOVERNANCE_EVENT not in [event.type for event in events]
        assert not (temp_dir / "history" / "run-index.jsonl").exists()

    def test_invalid_run_name(self, temp_dir: Path) -> None:
        """Test unsafe names are rejected before anything is written."""
        with pytest.raises(InvalidRunNameError):
            run_pipeline(temp_dir, "../escape", exit_code=0)

        assert not (temp_dir / "runs").exists()

    def test_json_report_to_output_dir(self, temp_dir: Path) -> None:
        """Test format and output directory are passed through to the report."""
        result = run_pipeline(temp_dir, "ci-3", exit_code=0, output_dir=temp_dir / "out", fmt=ReportFormat.JSON)

        assert result.report_path.parent == temp_dir / "out"
        data = json.loads(result.report_path.read_text(encoding="utf-8"))
        assert data["runName"] == "ci-3"
