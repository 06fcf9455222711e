"""Pytest fixtures for MindTrace tests."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from mindtrace.runtime.artifacts import ROOT_CAUSE_SUMMARY
from mindtrace.runtime.layout import RunLayout, resolve_run_layout
from mindtrace.selectors.healing import PageSnapshot


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for run output."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def layout(temp_dir: Path) -> RunLayout:
    """Resolved layout for a run named ci-123."""
    return resolve_run_layout(temp_dir, "ci-123")


@pytest.fixture
def write_classification(layout: RunLayout):
    """Write a root cause summary for the layout's run."""

    def _write(**fields: Any) -> Path:
        data = {"category": "timeout", "confidence": 0.9, "isFlaky": False}
        data.update(fields)
        path = layout.artifact_path(ROOT_CAUSE_SUMMARY)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_failure_context() -> dict[str, Any]:
    """Failure context as captured by the test reporter."""
    return {
        "testName": "login works",
        "testFile": "tests/login.spec.ts",
        "errorMessage": "locator.click: Timeout 30000ms exceeded.\n"
        "waiting for locator('#submit-btn')",
        "networkLogs": [{"url": "https://app.test/api/session", "method": "POST", "status": 200}],
        "consoleLogs": [],
        "retryCount": 0,
        "duration": 31250,
    }


@pytest.fixture
def sample_snapshot() -> PageSnapshot:
    """Login page snapshot where the submit button lost its id."""
    return PageSnapshot.model_validate(
        {
            "url": "https://app.test/login",
            "elements": [
                {
                    "tagName": "form",
                    "attributes": {"class": "login-form"},
                    "children": [
                        {
                            "tagName": "input",
                            "attributes": {"name": "email", "placeholder": "Email address"},
                        },
                        {
                            "tagName": "button",
                            "attributes": {"class": "btn btn-primary", "type": "submit"},
                            "textContent": "  Sign in ",
                            "role": "button",
                            "dataTestId": "login-submit",
                        },
                    ],
                }
            ],
        }
    )
