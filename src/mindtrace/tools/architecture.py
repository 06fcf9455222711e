"""
Test architecture validation against framework style contracts.

Rules per style:
- native: spec files import from @playwright/test and do not use Cucumber
- bdd: step definition files register Given/When/Then steps
- pom-bdd: step definitions go through page objects instead of raw page
  locator calls
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from mindtrace.config import FrameworkStyle

logger = structlog.get_logger(__name__)

_PLAYWRIGHT_IMPORT = re.compile(r"""from\s+['"]@playwright/test['"]""")
_CUCUMBER_IMPORT = re.compile(r"""from\s+['"]@cucumber/cucumber['"]""")
_STEP_REGISTRATION = re.compile(r"^\s*(Given|When|Then)\s*\(", re.MULTILINE)
_RAW_PAGE_CALL = re.compile(r"\bpage\.(locator|click|fill|type|getBy\w+|\$\$?)\s*\(")
_SPEC_FILE = re.compile(r"\.(spec|test)\.[jt]sx?$")
_STEP_FILE = re.compile(r"\.steps?\.[jt]sx?$")


@dataclass(frozen=True, slots=True)
class Violation:
    """A single rule violation in a test file."""

    file: str
    rule: str
    message: str
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "rule": self.rule, "message": self.message, "line": self.line}


@dataclass
class ArchitectureReport:
    """Validation result for a set of test files."""

    framework: str
    test_files: list[str]
    violations: list[Violation] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "failed" if self.violations else "passed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework,
            "testFiles": self.test_files,
            "violations": [v.to_dict() for v in self.violations],
            "status": self.status,
        }


def _is_step_file(path: Path) -> bool:
    return bool(_STEP_FILE.search(path.name)) or "step_definitions" in path.parts


def _line_of(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


class ArchitectureValidator:
    """Checks test files against the contract of a framework style."""

    def __init__(self, base_dir: str | Path = ".") -> None:
        self.base_dir = Path(base_dir)
        self._log = logger.bind(component="architecture_validator")

    def validate(self, framework: FrameworkStyle | str, test_files: list[str]) -> ArchitectureReport:
        style = FrameworkStyle(framework)
        report = ArchitectureReport(framework=str(style), test_files=list(test_files))

        for name in test_files:
            path = Path(name)
            if not path.is_absolute():
                path = self.base_dir / path
            if not path.is_file():
                report.violations.append(Violation(name, "file-not-found", f"Test file not found: {name}"))
                continue

            content = path.read_text(encoding="utf-8")
            match style:
                case FrameworkStyle.NATIVE:
                    report.violations.extend(self._check_native(name, path, content))
                case FrameworkStyle.BDD:
                    report.violations.extend(self._check_bdd(name, path, content))
                case FrameworkStyle.POM_BDD:
                    report.violations.extend(self._check_bdd(name, path, content))
                    report.violations.extend(self._check_page_objects(name, path, content))

        self._log.info(
            "Architecture validated",
            framework=str(style),
            files=len(test_files),
            violations=len(report.violations),
        )
        return report

    @staticmethod
    def _check_native(name: str, path: Path, content: str) -> list[Violation]:
        violations: list[Violation] = []
        if _SPEC_FILE.search(path.name) and not _PLAYWRIGHT_IMPORT.search(content):
            violations.append(
                Violation(name, "playwright-import", "Spec files must import from '@playwright/test'")
            )
        cucumber = _CUCUMBER_IMPORT.search(content)
        if cucumber:
            violations.append(
                Violation(
                    name,
                    "no-cucumber",
                    "Native style tests must not use Cucumber steps",
                    _line_of(content, cucumber.start()),
                )
            )
        return violations

    @staticmethod
    def _check_bdd(name: str, path: Path, content: str) -> list[Violation]:
        if path.suffix == ".feature":
            if "Feature:" not in content:
                return [Violation(name, "feature-header", "Feature files must declare a Feature:")]
            return []
        if _is_step_file(path) and not _STEP_REGISTRATION.search(content):
            return [Violation(name, "step-definitions", "Step files must define Given/When/Then steps")]
        return []

    @staticmethod
    def _check_page_objects(name: str, path: Path, content: str) -> list[Violation]:
        if not _is_step_file(path):
            return []
        return [
            Violation(
                name,
                "page-object",
                f"Step definitions must use page objects instead of page.{match.group(1)}()",
                _line_of(content, match.start()),
            )
            for match in _RAW_PAGE_CALL.finditer(content)
        ]
