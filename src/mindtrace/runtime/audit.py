"""
Append-only, hash-chained audit trail for a run.

Each line of audit/events.ndjson carries the digest of the previous line,
so any edit, deletion or reordering of earlier events is detectable.
audit/final.json is a snapshot of the most recent finalize call; events
dropped from the end of the log are detected against it.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from mindtrace.runtime.errors import AuditTrailError
from mindtrace.runtime.layout import RunLayout
from mindtrace.runtime.models import AuditEvent, AuditFinal

logger = structlog.get_logger(__name__)

EVENTS_FILENAME = "events.ndjson"
FINAL_FILENAME = "final.json"
GENESIS_DIGEST = "0" * 64

FINALIZE_EVENT = "finalize"


def compute_digest(previous_digest: str, body: dict[str, Any]) -> str:
    """Digest over the previous digest and the canonical JSON of the event body."""
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256((previous_digest + canonical).encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class ChainVerification:
    """Result of recomputing the digest chain."""

    valid: bool
    event_count: int
    head_digest: str
    broken_at: int | None = None
    reason: str | None = None


class AuditTrail:
    """Writes and verifies a run's audit events."""

    def __init__(self) -> None:
        self._log = logger.bind(component="audit_trail")

    @staticmethod
    def events_path(layout: RunLayout) -> Path:
        return layout.audit_dir / EVENTS_FILENAME

    @staticmethod
    def final_path(layout: RunLayout) -> Path:
        return layout.audit_dir / FINAL_FILENAME

    def record(
        self,
        layout: RunLayout,
        run_name: str,
        event_type: str,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append one event to the run's log.

        Raises:
            AuditTrailError: If the log cannot be read or appended to
        """
        path = self.events_path(layout)
        try:
            layout.audit_dir.mkdir(parents=True, exist_ok=True)
            sequence, previous_digest = self._chain_head(path)

            event = AuditEvent(
                timestamp=datetime.now(UTC),
                run_name=run_name,
                type=event_type,
                sequence=sequence + 1,
                previous_digest=previous_digest,
                payload=dict(payload or {}),
            )
            event = replace(event, digest=compute_digest(previous_digest, event.chain_body()))

            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict()) + "\n")
        except (OSError, json.JSONDecodeError) as e:
            self._log.error("Failed to append audit event", run=run_name, path=str(path), error=str(e))
            raise AuditTrailError(f"Failed to append audit event to {path}: {e}") from e

        self._log.debug("Audit event recorded", run=run_name, type=event_type, seq=event.sequence)
        return event

    def finalize(self, layout: RunLayout, run_name: str) -> AuditFinal:
        """
        Append a finalize event and rewrite final.json.

        Raises:
            AuditTrailError: If the audit directory is not writable
        """
        event = self.record(layout, run_name, FINALIZE_EVENT)
        verification = self.verify(layout)

        final = AuditFinal(
            run_name=run_name,
            finalized_at=event.timestamp,
            events_path=str(self.events_path(layout)),
            event_count=verification.event_count,
            head_digest=verification.head_digest,
            chain_valid=verification.valid,
        )

        path = self.final_path(layout)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(final.to_dict(), indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            self._log.error("Failed to write audit summary", run=run_name, path=str(path), error=str(e))
            raise AuditTrailError(f"Failed to write audit summary {path}: {e}") from e

        self._log.info(
            "Audit finalized",
            run=run_name,
            events=final.event_count,
            chain_valid=final.chain_valid,
        )
        return final

    def read_events(self, layout: RunLayout) -> list[AuditEvent]:
        """Read all events in append order."""
        path = self.events_path(layout)
        if not path.exists():
            return []
        return [AuditEvent.from_dict(data) for data in self._read_lines(path)]

    def read_final(self, layout: RunLayout) -> AuditFinal | None:
        path = self.final_path(layout)
        if not path.exists():
            return None
        return AuditFinal.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def verify(self, layout: RunLayout) -> ChainVerification:
        """Recompute the digest chain over the whole event log."""
        path = self.events_path(layout)
        lines: list[str] = []
        if path.exists():
            lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
        total = len(lines)
        digests: list[str] = []
        previous_digest = GENESIS_DIGEST
        for index, line in enumerate(lines, start=1):
            try:
                event = AuditEvent.from_dict(json.loads(line))
            except (KeyError, TypeError, ValueError) as e:
                return self._broken(index, total, previous_digest, f"malformed event: {e}")

            if event.sequence != index:
                return self._broken(index, total, previous_digest, f"sequence {event.sequence} out of order")
            if event.previous_digest != previous_digest:
                return self._broken(index, total, previous_digest, "previous digest mismatch")
            if compute_digest(previous_digest, event.chain_body()) != event.digest:
                return self._broken(index, total, previous_digest, "digest mismatch")

            previous_digest = event.digest
            digests.append(event.digest)

        truncation = self._check_final(layout, digests)
        if truncation is not None:
            return self._broken(total + 1, total, previous_digest, truncation)

        return ChainVerification(valid=True, event_count=total, head_digest=previous_digest)

    def _check_final(self, layout: RunLayout, digests: list[str]) -> str | None:
        """
        Compare the log with the last final.json snapshot.

        Events appended after the snapshot are allowed; the snapshot's head
        event must still be present with the recorded digest.
        """
        try:
            final = self.read_final(layout)
        except (KeyError, TypeError, ValueError) as e:
            return f"unreadable final snapshot: {e}"
        if final is None or final.event_count == 0:
            return None
        if len(digests) < final.event_count or digests[final.event_count - 1] != final.head_digest:
            return "truncated after final snapshot"
        return None

    def _broken(self, index: int, total: int, head: str, reason: str) -> ChainVerification:
        self._log.warning("Audit chain broken", sequence=index, reason=reason)
        return ChainVerification(
            valid=False,
            event_count=total,
            head_digest=head,
            broken_at=index,
            reason=reason,
        )

    def _chain_head(self, path: Path) -> tuple[int, str]:
        """Sequence number and digest of the last event, or the genesis values."""
        if not path.exists():
            return 0, GENESIS_DIGEST

        last: dict[str, Any] | None = None
        count = 0
        for data in self._read_lines(path):
            last = data
            count += 1

        if last is None:
            return 0, GENESIS_DIGEST
        return count, last.get("digest", GENESIS_DIGEST)

    @staticmethod
    def _read_lines(path: Path) -> list[dict[str, Any]]:
        lines = path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
