"""
Per-run directory layout.

Storage structure:
    {base_dir}/
        runs/
            {run_name}/
                artifacts/
                audit/
        history/
            run-index.jsonl
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from mindtrace.runtime.errors import InvalidRunNameError

logger = structlog.get_logger(__name__)

RUNS_DIRNAME = "runs"
ARTIFACTS_DIRNAME = "artifacts"
AUDIT_DIRNAME = "audit"
HISTORY_DIRNAME = "history"
HISTORY_INDEX_FILENAME = "run-index.jsonl"

_RUN_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.@+-]*$")


@dataclass(frozen=True, slots=True)
class RunLayout:
    """Resolved on-disk locations for one run."""

    run_name: str
    base_dir: Path
    run_root: Path
    artifacts_dir: Path
    audit_dir: Path
    history_dir: Path
    history_index_path: Path

    def artifact_path(self, filename: str) -> Path:
        return self.artifacts_dir / filename


def history_index_path(base_dir: str | Path) -> Path:
    """Location of the shared history index under a base directory."""
    return Path(base_dir).resolve() / HISTORY_DIRNAME / HISTORY_INDEX_FILENAME


def validate_run_name(run_name: str) -> str:
    """Reject run names that are not safe as a single path segment."""
    if not run_name:
        raise InvalidRunNameError(run_name, "must not be empty")
    if "/" in run_name or "\\" in run_name:
        raise InvalidRunNameError(run_name, "must not contain path separators")
    if ".." in run_name:
        raise InvalidRunNameError(run_name, "must not contain '..'")
    if not _RUN_NAME_PATTERN.match(run_name):
        raise InvalidRunNameError(
            run_name, "must start with a letter, digit or underscore and use [A-Za-z0-9_.@+-]"
        )
    return run_name


def resolve_run_layout(base_dir: str | Path, run_name: str) -> RunLayout:
    """
    Compute the layout for a run and ensure its directories exist.

    Safe to call any number of times; existing directories are left as is.

    Raises:
        InvalidRunNameError: If run_name is not a safe path segment
        OSError: If the directories cannot be created
    """
    validate_run_name(run_name)

    base = Path(base_dir).resolve()
    run_root = base / RUNS_DIRNAME / run_name
    history_dir = base / HISTORY_DIRNAME

    layout = RunLayout(
        run_name=run_name,
        base_dir=base,
        run_root=run_root,
        artifacts_dir=run_root / ARTIFACTS_DIRNAME,
        audit_dir=run_root / AUDIT_DIRNAME,
        history_dir=history_dir,
        history_index_path=history_index_path(base),
    )

    for directory in (layout.run_root, layout.artifacts_dir, layout.audit_dir, layout.history_dir):
        directory.mkdir(parents=True, exist_ok=True)

    logger.debug("Run layout resolved", run=run_name, root=str(run_root))
    return layout
