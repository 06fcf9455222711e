"""
Data models for run governance.

FailureClassification is a Pydantic model because it is parsed from
externally produced JSON. The records MindTrace writes itself are plain
dataclasses with explicit to_dict/from_dict for the on-disk wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FailureCategory(StrEnum):
    """Failure categories produced by a classifier."""

    NONE = "none"
    DOM_CHANGED = "dom_changed"
    SELECTOR_FAILED = "selector_failed"
    API_ERROR = "api_error"
    TIMEOUT = "timeout"
    NAVIGATION_MISMATCH = "navigation_mismatch"
    UX_REGRESSION = "ux_regression"
    UNEXPECTED_MODAL = "unexpected_modal"
    ENVIRONMENTAL = "environmental"
    TEST_LOGIC_ERROR = "test_logic_error"
    UNKNOWN = "unknown"


class FailureClassification(BaseModel):
    """Classification of a run's failure, persisted as root-cause-summary.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: FailureCategory = FailureCategory.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_flaky: bool = Field(default=False, alias="isFlaky")
    root_cause: str = Field(default="", alias="rootCause")
    suggested_actions: list[str] = Field(default_factory=list, alias="suggestedActions")
    reasoning: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> Any:
        """Map unrecognized category strings to UNKNOWN."""
        if isinstance(v, str) and v not in {c.value for c in FailureCategory}:
            return FailureCategory.UNKNOWN
        return v

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, slots=True)
class GovernanceVerdict:
    """Outcome of the governance gate for one run."""

    exit_code: int
    is_flaky: bool
    passed: bool
    policy: str = "flaky-exemption"
    classification_present: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "exitCode": self.exit_code,
            "isFlaky": self.is_flaky,
            "passed": self.passed,
            "policy": self.policy,
            "classificationPresent": self.classification_present,
        }


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """A single hash-chained entry of audit/events.ndjson."""

    timestamp: datetime
    run_name: str
    type: str
    sequence: int
    previous_digest: str
    digest: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    def chain_body(self) -> dict[str, Any]:
        """Fields covered by the digest (everything except the digest itself)."""
        return {
            "seq": self.sequence,
            "ts": self.timestamp.isoformat(),
            "runName": self.run_name,
            "type": self.type,
            "payload": self.payload,
            "prevDigest": self.previous_digest,
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.chain_body()
        data["digest"] = self.digest
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEvent:
        return cls(
            timestamp=datetime.fromisoformat(data["ts"]),
            run_name=data["runName"],
            type=data["type"],
            sequence=data.get("seq", 0),
            previous_digest=data.get("prevDigest", ""),
            digest=data.get("digest", ""),
            payload=data.get("payload", {}),
        )


@dataclass(frozen=True, slots=True)
class AuditFinal:
    """Snapshot written to audit/final.json on every finalize."""

    run_name: str
    finalized_at: datetime
    events_path: str
    event_count: int
    head_digest: str
    chain_valid: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "runName": self.run_name,
            "finalizedAt": self.finalized_at.isoformat(),
            "eventsPath": self.events_path,
            "eventCount": self.event_count,
            "headDigest": self.head_digest,
            "chainValid": self.chain_valid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditFinal:
        return cls(
            run_name=data["runName"],
            finalized_at=datetime.fromisoformat(data["finalizedAt"]),
            events_path=data["eventsPath"],
            event_count=data.get("eventCount", 0),
            head_digest=data.get("headDigest", ""),
            chain_valid=data.get("chainValid", False),
        )


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """One line of the shared history/run-index.jsonl."""

    timestamp: datetime
    run_name: str
    category: str
    confidence: float
    is_flaky: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.timestamp.isoformat(),
            "runName": self.run_name,
            "category": self.category,
            "confidence": self.confidence,
            "isFlaky": self.is_flaky,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryRecord:
        return cls(
            timestamp=datetime.fromisoformat(data["ts"]),
            run_name=data["runName"],
            category=data.get("category", FailureCategory.UNKNOWN.value),
            confidence=float(data.get("confidence", 0)),
            is_flaky=bool(data.get("isFlaky", False)),
        )
