"""
Run catalog: allocates runs and persists their metadata.

Each created run gets the standard layout plus:
    runs/{run_name}/
        metadata.json
        prompts/
            active.md
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from mindtrace.runtime.layout import RUNS_DIRNAME, RunLayout, resolve_run_layout, validate_run_name
from mindtrace.tools.prompts import PromptLibrary
from mindtrace.tools.registry import ToolError

logger = structlog.get_logger(__name__)

METADATA_FILENAME = "metadata.json"
PROMPTS_DIRNAME = "prompts"
ACTIVE_PROMPT_FILENAME = "active.md"


class RunNotFoundError(ToolError):
    """Raised when a run has no persisted metadata or active prompt."""

    pass


@dataclass(frozen=True, slots=True)
class RunMetadata:
    """Metadata persisted when a run is created."""

    run_name: str
    framework: str
    message: str
    selected_prompt: str
    created_at: datetime
    style: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runName": self.run_name,
            "framework": self.framework,
            "message": self.message,
            "style": self.style,
            "selectedPrompt": self.selected_prompt,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunMetadata:
        return cls(
            run_name=data["runName"],
            framework=data["framework"],
            message=data.get("message", ""),
            selected_prompt=data.get("selectedPrompt", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
            style=data.get("style"),
        )


def generate_run_name(framework: str, now: datetime | None = None) -> str:
    """Default run name: run-{framework}-{epoch milliseconds}."""
    now = now or datetime.now(UTC)
    return f"run-{framework}-{int(now.timestamp() * 1000)}"


class RunCatalog:
    """Creates runs and reads back their metadata."""

    def __init__(self, base_dir: str | Path, prompts: PromptLibrary) -> None:
        self.base_dir = Path(base_dir)
        self._prompts = prompts
        self._log = logger.bind(component="run_catalog")

    def create_run(
        self,
        framework: str,
        message: str,
        run_name: str | None = None,
        style: str | None = None,
    ) -> tuple[RunLayout, RunMetadata, Path]:
        """
        Allocate a run, copy the routed prompt into it and write metadata.json.

        Returns:
            Tuple of (layout, metadata, active prompt path)

        Raises:
            InvalidRunNameError: If run_name is not a safe path segment
            PromptNotFoundError: If the framework has no prompts
        """
        name = run_name or generate_run_name(framework)
        route = self._prompts.route(framework, message, style)
        layout = resolve_run_layout(self.base_dir, name)

        prompts_dir = layout.run_root / PROMPTS_DIRNAME
        prompts_dir.mkdir(parents=True, exist_ok=True)
        active_prompt_path = prompts_dir / ACTIVE_PROMPT_FILENAME
        active_prompt_path.write_text(route.prompt_content, encoding="utf-8")

        metadata = RunMetadata(
            run_name=name,
            framework=framework,
            message=message,
            selected_prompt=route.selected_prompt,
            created_at=datetime.now(UTC),
            style=style,
        )
        (layout.run_root / METADATA_FILENAME).write_text(
            json.dumps(metadata.to_dict(), indent=2), encoding="utf-8"
        )

        self._log.info("Run created", run=name, framework=framework, prompt=route.selected_prompt)
        return layout, metadata, active_prompt_path

    def get_run(self, run_name: str) -> tuple[RunMetadata, str]:
        """
        Read a run's metadata and active prompt.

        Raises:
            RunNotFoundError: If the run was not created through this catalog
        """
        validate_run_name(run_name)
        # Reading never creates directories, so the layout is not resolved here.
        run_root = self.base_dir.resolve() / RUNS_DIRNAME / run_name
        active_prompt_path = run_root / PROMPTS_DIRNAME / ACTIVE_PROMPT_FILENAME
        metadata_path = run_root / METADATA_FILENAME

        if not active_prompt_path.is_file():
            raise RunNotFoundError(f"Active prompt not found for run: {run_name}")
        if not metadata_path.is_file():
            raise RunNotFoundError(f"Metadata not found for run: {run_name}")

        metadata = RunMetadata.from_dict(json.loads(metadata_path.read_text(encoding="utf-8")))
        return metadata, active_prompt_path.read_text(encoding="utf-8")
