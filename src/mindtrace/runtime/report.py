"""
Report bundle rendering.

Combines the failure narrative and the root cause summary of a run into a
single document. Reports are regenerated by replacement.
"""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path

import structlog

from mindtrace.runtime.artifacts import FAILURE_NARRATIVE, ROOT_CAUSE_SUMMARY, ArtifactStore
from mindtrace.runtime.layout import RunLayout

logger = structlog.get_logger(__name__)

DEFAULT_REPORTS_DIRNAME = "reports"
NO_NARRATIVE = "No narrative."
EMPTY_RCA = "{}"


class ReportFormat(StrEnum):
    """Supported report output formats."""

    MARKDOWN = "markdown"
    JSON = "json"


class ReportBundler:
    """Renders the per-run report."""

    def __init__(self, store: ArtifactStore | None = None) -> None:
        self._store = store or ArtifactStore()
        self._log = logger.bind(component="report_bundler")

    def render(
        self,
        layout: RunLayout,
        run_name: str,
        output_dir: str | Path | None = None,
        fmt: ReportFormat | str = ReportFormat.MARKDOWN,
    ) -> Path:
        """
        Render the report and write it to disk.

        Args:
            layout: Resolved run layout
            run_name: Run to report on
            output_dir: Output directory; relative paths resolve against the
                layout's base directory. Defaults to "reports".
            fmt: Output format

        Returns:
            Path of the written report
        """
        fmt = ReportFormat(fmt)
        report_dir = self._resolve_output_dir(layout, output_dir)
        report_dir.mkdir(parents=True, exist_ok=True)

        narrative = self._store.read_text(layout, FAILURE_NARRATIVE)
        rca_raw = self._store.read_text(layout, ROOT_CAUSE_SUMMARY)
        narrative_text = narrative.strip() if narrative is not None else NO_NARRATIVE
        rca_text = rca_raw.strip() if rca_raw and rca_raw.strip() else EMPTY_RCA

        match fmt:
            case ReportFormat.MARKDOWN:
                path = report_dir / f"report-{run_name}.md"
                content = self.render_markdown(run_name, narrative_text, rca_text)
            case ReportFormat.JSON:
                path = report_dir / f"report-{run_name}.json"
                content = self.render_json(run_name, narrative_text, rca_text)

        path.write_text(content, encoding="utf-8")
        self._log.info("Report generated", run=run_name, format=str(fmt), path=str(path))
        return path

    @staticmethod
    def render_markdown(run_name: str, narrative: str, rca: str) -> str:
        lines = [
            "# MindTrace Report",
            "",
            f"Run: **{run_name}**",
            "",
            "## Failure Narrative",
            narrative,
            "",
            "## RCA Summary",
            "```json",
            rca,
            "```",
            "",
        ]
        return "\n".join(lines)

    @staticmethod
    def render_json(run_name: str, narrative: str, rca: str) -> str:
        try:
            rca_data = json.loads(rca)
        except json.JSONDecodeError:
            rca_data = {"raw": rca}
        return json.dumps({"runName": run_name, "narrative": narrative, "rca": rca_data}, indent=2)

    @staticmethod
    def _resolve_output_dir(layout: RunLayout, output_dir: str | Path | None) -> Path:
        if output_dir is None:
            return layout.base_dir / DEFAULT_REPORTS_DIRNAME
        path = Path(output_dir)
        if path.is_absolute():
            return path
        return layout.base_dir / path
