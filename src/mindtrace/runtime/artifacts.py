"""
Artifact generation and validation for a run.

Artifacts are write-once: every write in this module is create-if-missing,
so re-running the pipeline never replaces evidence from the real test run.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from mindtrace.runtime.errors import InvalidArtifactFormatError, MissingArtifactError
from mindtrace.runtime.layout import RunLayout
from mindtrace.runtime.models import FailureClassification

logger = structlog.get_logger(__name__)

HEALED_SELECTORS = "healed-selectors.json"
ROOT_CAUSE_SUMMARY = "root-cause-summary.json"
FAILURE_NARRATIVE = "failure-narrative.md"
EXECUTION_TRACE_MAP = "execution-trace-map.json"

DEFAULT_NARRATIVE = "# Failure Narrative\n\nNo failures detected.\n"
DEFAULT_CLASSIFICATION: dict[str, Any] = {"category": "none", "confidence": 1, "isFlaky": False}


class ArtifactKind(StrEnum):
    """How an artifact is checked during validation."""

    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class ArtifactSpec:
    """A named artifact within a run's artifacts directory."""

    filename: str
    kind: ArtifactKind
    required: bool = True

    def default_content(self) -> str:
        match self.filename:
            case "healed-selectors.json":
                return _dump_json({"selectors": []})
            case "root-cause-summary.json":
                return _dump_json(DEFAULT_CLASSIFICATION)
            case "failure-narrative.md":
                return DEFAULT_NARRATIVE
            case "execution-trace-map.json":
                return _dump_json({"steps": []})
            case _:
                raise ValueError(f"No default content for artifact: {self.filename}")


REQUIRED_ARTIFACTS: tuple[ArtifactSpec, ...] = (
    ArtifactSpec(HEALED_SELECTORS, ArtifactKind.JSON),
    ArtifactSpec(ROOT_CAUSE_SUMMARY, ArtifactKind.JSON),
    ArtifactSpec(FAILURE_NARRATIVE, ArtifactKind.TEXT),
    ArtifactSpec(EXECUTION_TRACE_MAP, ArtifactKind.JSON),
)


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2)


class ArtifactStore:
    """
    Persists and validates the diagnostic artifacts of a run.

    All methods take a resolved RunLayout; the store keeps no per-run state.
    """

    def __init__(self, artifacts: tuple[ArtifactSpec, ...] = REQUIRED_ARTIFACTS) -> None:
        self._artifacts = artifacts
        self._log = logger.bind(component="artifact_store")

    @property
    def artifacts(self) -> tuple[ArtifactSpec, ...]:
        return self._artifacts

    def ensure_default_artifacts(self, layout: RunLayout) -> list[str]:
        """
        Write a minimal valid default for every required artifact that is absent.

        Returns:
            Filenames that were created by this call
        """
        created: list[str] = []
        for spec in self._artifacts:
            if not spec.required:
                continue
            if self._write_if_absent(layout, spec.filename, spec.default_content()):
                created.append(spec.filename)

        self._log.info(
            "Default artifacts ensured",
            run=layout.run_name,
            created=created,
        )
        return created

    def validate(self, layout: RunLayout) -> None:
        """
        Check that required artifacts exist and structured ones parse.

        Raises:
            MissingArtifactError: If a required artifact is absent
            InvalidArtifactFormatError: If a JSON artifact is malformed
        """
        required = [spec for spec in self._artifacts if spec.required]

        for spec in required:
            path = layout.artifact_path(spec.filename)
            if not path.is_file():
                self._log.error("Missing required artifact", run=layout.run_name, path=str(path))
                raise MissingArtifactError(path)

        for spec in required:
            if spec.kind != ArtifactKind.JSON:
                continue
            path = layout.artifact_path(spec.filename)
            try:
                json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                self._log.error("Invalid JSON artifact", run=layout.run_name, path=str(path))
                raise InvalidArtifactFormatError(path, str(e)) from e

        self._log.info("Artifacts validated", run=layout.run_name, count=len(required))

    def store_classification(
        self, layout: RunLayout, classification: FailureClassification
    ) -> bool:
        """Persist a classifier result as root-cause-summary.json."""
        return self._write_if_absent(
            layout, ROOT_CAUSE_SUMMARY, _dump_json(classification.to_dict())
        )

    def store_narrative(self, layout: RunLayout, narrative: str) -> bool:
        """Persist the failure narrative markdown."""
        if not narrative.endswith("\n"):
            narrative += "\n"
        return self._write_if_absent(layout, FAILURE_NARRATIVE, narrative)

    def store_healed_selectors(
        self, layout: RunLayout, selectors: list[dict[str, Any]]
    ) -> bool:
        """Persist the list of healing records."""
        return self._write_if_absent(layout, HEALED_SELECTORS, _dump_json({"selectors": selectors}))

    def store_trace(self, layout: RunLayout, steps: list[dict[str, Any]]) -> bool:
        """Persist the execution trace map."""
        return self._write_if_absent(layout, EXECUTION_TRACE_MAP, _dump_json({"steps": steps}))

    def read_classification(self, layout: RunLayout) -> FailureClassification | None:
        """
        Read the persisted classification.

        Returns:
            The classification, or None when the artifact is absent or unreadable
        """
        path = layout.artifact_path(ROOT_CAUSE_SUMMARY)
        if not path.is_file():
            return None

        try:
            raw = path.read_text(encoding="utf-8").strip()
            if not raw:
                return None
            return FailureClassification.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
            self._log.warning(
                "Unreadable root cause summary",
                run=layout.run_name,
                path=str(path),
                error=str(e),
            )
            return None

    def read_text(self, layout: RunLayout, filename: str) -> str | None:
        """Read an artifact as text, or None when absent."""
        path = layout.artifact_path(filename)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def artifact_stats(self, layout: RunLayout) -> dict[str, Any]:
        """Get statistics about the artifacts present for a run."""
        stats: dict[str, Any] = {
            "total_count": 0,
            "total_size": 0,
            "by_name": {},
        }

        for path in sorted(layout.artifacts_dir.iterdir()):
            if not path.is_file():
                continue
            size = path.stat().st_size
            stats["total_count"] += 1
            stats["total_size"] += size
            stats["by_name"][path.name] = size

        return stats

    def _write_if_absent(self, layout: RunLayout, filename: str, content: str) -> bool:
        path: Path = layout.artifact_path(filename)
        layout.artifacts_dir.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            self._log.debug("Artifact already present", run=layout.run_name, artifact=filename)
            return False

        self._log.debug("Artifact written", run=layout.run_name, artifact=filename, size=len(content))
        return True
