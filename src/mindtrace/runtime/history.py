"""
Historical run index.

history/run-index.jsonl is a chronological trend log shared by all runs.
It is append-only: repeated indexing of the same run adds another line,
and consumers aggregate by run name when they need the latest state.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from mindtrace.runtime.artifacts import ArtifactStore
from mindtrace.runtime.layout import RunLayout
from mindtrace.runtime.models import FailureCategory, HistoryRecord

logger = structlog.get_logger(__name__)


class HistoryIndex:
    """Appends run summaries to the shared history log and reads them back."""

    def __init__(self, store: ArtifactStore | None = None) -> None:
        self._store = store or ArtifactStore()
        self._log = logger.bind(component="history_index")

    def append(self, layout: RunLayout, run_name: str) -> HistoryRecord:
        """Append one summary line for the run's current classification."""
        classification = self._store.read_classification(layout)

        if classification is None:
            record = HistoryRecord(
                timestamp=datetime.now(UTC),
                run_name=run_name,
                category=FailureCategory.UNKNOWN.value,
                confidence=0.0,
                is_flaky=False,
            )
        else:
            record = HistoryRecord(
                timestamp=datetime.now(UTC),
                run_name=run_name,
                category=classification.category.value,
                confidence=classification.confidence,
                is_flaky=classification.is_flaky,
            )

        layout.history_dir.mkdir(parents=True, exist_ok=True)
        with layout.history_index_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict()) + "\n")

        self._log.info(
            "Run indexed",
            run=run_name,
            category=record.category,
            is_flaky=record.is_flaky,
            path=str(layout.history_index_path),
        )
        return record

    def read_records(
        self, source: RunLayout | Path, run_name: str | None = None
    ) -> list[HistoryRecord]:
        """
        Read records in append order, optionally for a single run.

        Args:
            source: A run layout, or the path of the history index itself
            run_name: Only return records for this run
        """
        path = source.history_index_path if isinstance(source, RunLayout) else Path(source)
        if not path.exists():
            return []

        records: list[HistoryRecord] = []
        for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = HistoryRecord.from_dict(json.loads(line))
            except (KeyError, TypeError, ValueError) as e:
                self._log.warning("Skipping malformed history line", line=line_no, error=str(e))
                continue
            if run_name is None or record.run_name == run_name:
                records.append(record)

        return records

    def latest_by_run(self, source: RunLayout | Path) -> dict[str, HistoryRecord]:
        """Most recent record per run name."""
        latest: dict[str, HistoryRecord] = {}
        for record in self.read_records(source):
            latest[record.run_name] = record
        return latest

    def trend_summary(self, source: RunLayout | Path) -> dict[str, Any]:
        """Aggregate the latest state of every run into category counts and flaky rate."""
        latest = self.latest_by_run(source)
        categories = Counter(record.category for record in latest.values())
        flaky = sum(1 for record in latest.values() if record.is_flaky)

        return {
            "total_runs": len(latest),
            "total_records": len(self.read_records(source)),
            "by_category": dict(sorted(categories.items())),
            "flaky_runs": flaky,
            "flaky_rate": flaky / len(latest) if latest else 0.0,
        }
