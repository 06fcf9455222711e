"""Tests for the hash-chained audit trail."""

from __future__ import annotations

import json
import os
import stat

import pytest

from mindtrace.runtime.audit import GENESIS_DIGEST, AuditTrail, compute_digest
from mindtrace.runtime.errors import AuditTrailError
from mindtrace.runtime.layout import RunLayout


class TestFinalize:
    """Tests for AuditTrail.finalize."""

    def test_first_finalize(self, layout: RunLayout) -> None:
        """Test one finalize writes one event and final.json."""
        trail = AuditTrail()
        final = trail.finalize(layout, "ci-123")

        lines = trail.events_path(layout).read_text().splitlines()
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["type"] == "finalize"
        assert event["runName"] == "ci-123"
        assert event["seq"] == 1
        assert event["prevDigest"] == GENESIS_DIGEST

        assert final.event_count == 1
        assert final.chain_valid
        assert final.head_digest == event["digest"]

    def test_n_finalizes_append_n_lines(self, layout: RunLayout) -> None:
        """Test N finalize calls leave N lines and one final.json for the last call."""
        trail = AuditTrail()
        finals = [trail.finalize(layout, "ci-123") for _ in range(3)]

        assert len(trail.events_path(layout).read_text().splitlines()) == 3
        assert [p.name for p in layout.audit_dir.iterdir() if p.name.startswith("final")] == [
            "final.json"
        ]

        stored = json.loads(trail.final_path(layout).read_text())
        assert stored["finalizedAt"] == finals[-1].finalized_at.isoformat()
        assert stored["eventCount"] == 3
        assert trail.read_final(layout) == finals[-1]

    def test_unwritable_audit_dir(self, layout: RunLayout) -> None:
        """Test that an unwritable audit directory raises AuditTrailError."""
        if os.name == "nt" or os.geteuid() == 0:
            pytest.skip("permission bits are not enforced for this user")

        layout.audit_dir.chmod(stat.S_IRUSR | stat.S_IXUSR)
        try:
            with pytest.raises(AuditTrailError):
                AuditTrail().finalize(layout, "ci-123")
        finally:
            layout.audit_dir.chmod(stat.S_IRWXU)

    def test_audit_error_is_oserror(self, layout: RunLayout) -> None:
        """Test that a file in place of the events log surfaces as OSError."""
        AuditTrail.events_path(layout).mkdir()

        with pytest.raises(OSError):
            AuditTrail().record(layout, "ci-123", "finalize")


class TestChain:
    """Tests for digest chaining and verification."""

    def test_events_are_chained(self, layout: RunLayout) -> None:
        """Test each event links to the previous digest."""
        trail = AuditTrail()
        first = trail.record(layout, "ci-123", "artifacts", {"created": ["a.json"]})
        second = trail.record(layout, "ci-123", "governance", {"passed": True})

        assert first.previous_digest == GENESIS_DIGEST
        assert second.previous_digest == first.digest
        assert second.sequence == 2
        assert first.digest == compute_digest(GENESIS_DIGEST, first.chain_body())

    def test_verify_intact_chain(self, layout: RunLayout) -> None:
        """Test verification of an untouched log."""
        trail = AuditTrail()
        trail.record(layout, "ci-123", "artifacts")
        trail.finalize(layout, "ci-123")

        verification = trail.verify(layout)
        assert verification.valid
        assert verification.event_count == 2
        assert verification.broken_at is None

    def test_verify_empty(self, layout: RunLayout) -> None:
        """Test verification without any events."""
        verification = AuditTrail().verify(layout)
        assert verification.valid
        assert verification.head_digest == GENESIS_DIGEST

    def test_detects_edit(self, layout: RunLayout) -> None:
        """Test that editing an earlier event breaks the chain."""
        trail = AuditTrail()
        trail.record(layout, "ci-123", "governance", {"passed": False})
        trail.finalize(layout, "ci-123")

        path = trail.events_path(layout)
        lines = path.read_text().splitlines()
        tampered = json.loads(lines[0])
        tampered["payload"]["passed"] = True
        lines[0] = json.dumps(tampered)
        path.write_text("\n".join(lines) + "\n")

        verification = trail.verify(layout)
        assert not verification.valid
        assert verification.broken_at == 1
        assert verification.reason == "digest mismatch"

    def test_detects_deletion(self, layout: RunLayout) -> None:
        """Test that removing an event breaks the chain."""
        trail = AuditTrail()
        for _ in range(3):
            trail.finalize(layout, "ci-123")

        path = trail.events_path(layout)
        lines = path.read_text().splitlines()
        path.write_text("\n".join([lines[0], lines[2]]) + "\n")

        verification = trail.verify(layout)
        assert not verification.valid
        assert verification.broken_at == 2

    def test_detects_truncation_after_finalize(self, layout: RunLayout) -> None:
        """Test that dropping trailing events is caught against final.json."""
        trail = AuditTrail()
        for _ in range(3):
            trail.finalize(layout, "ci-123")

        path = trail.events_path(layout)
        lines = path.read_text().splitlines()
        path.write_text("\n".join(lines[:-1]) + "\n")

        verification = trail.verify(layout)
        assert not verification.valid
        assert verification.event_count == 2
        assert verification.broken_at == 3
        assert verification.reason == "truncated after final snapshot"

    def test_detects_removed_log(self, layout: RunLayout) -> None:
        """Test that deleting the whole log after a finalize is caught."""
        trail = AuditTrail()
        trail.finalize(layout, "ci-123")
        trail.events_path(layout).unlink()

        assert not trail.verify(layout).valid

    def test_events_after_finalize_are_valid(self, layout: RunLayout) -> None:
        """Test that events recorded after the last snapshot keep the chain valid."""
        trail = AuditTrail()
        trail.finalize(layout, "ci-123")
        trail.record(layout, "ci-123", "note", {"k": "v"})

        verification = trail.verify(layout)
        assert verification.valid
        assert verification.event_count == 2

    def test_detects_malformed_line(self, layout: RunLayout) -> None:
        """Test that a garbage line is reported, not raised."""
        trail = AuditTrail()
        trail.finalize(layout, "ci-123")
        with trail.events_path(layout).open("a") as f:
            f.write("not json\n")

        verification = trail.verify(layout)
        assert not verification.valid
        assert verification.broken_at == 2
        assert verification.event_count == 2

    def test_read_events(self, layout: RunLayout) -> None:
        """Test events read back in append order."""
        trail = AuditTrail()
        trail.record(layout, "ci-123", "artifacts")
        trail.finalize(layout, "ci-123")

        assert [event.type for event in trail.read_events(layout)] == ["artifacts", "finalize"]
