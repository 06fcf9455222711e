"""
Configuration for MindTrace.

Settings come from MINDTRACE_* environment variables and an optional YAML
file. Environment values take precedence over the file, which takes
precedence over defaults.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mindtrace.runtime.layout import validate_run_name
from mindtrace.runtime.report import ReportFormat

logger = structlog.get_logger(__name__)

STANDARD_CONFIG_PATHS = (
    Path(".mindtrace/config.yaml"),
    Path(".mindtrace/config.yml"),
    Path("mindtrace.yaml"),
    Path("mindtrace.yml"),
)


class FrameworkStyle(StrEnum):
    """Test authoring styles supported by MindTrace."""

    NATIVE = "native"  # Playwright test runner
    BDD = "bdd"  # Playwright + Cucumber
    POM_BDD = "pom-bdd"  # Playwright + page objects + Cucumber


class MindTraceSettings(BaseSettings):
    """
    Environment-based MindTrace settings.

    Loads configuration from environment variables with MINDTRACE_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="MINDTRACE_",
        case_sensitive=False,
        extra="ignore",
    )

    base_dir: Path = Field(
        default=Path("."),
        description="Root under which runs/ and history/ are created",
    )
    run_name: str | None = Field(
        default=None,
        description="Deterministic run name (recommended in CI)",
    )
    reports_dir: Path = Field(
        default=Path("reports"),
        description="Report output directory; relative paths resolve against base_dir",
    )
    report_format: ReportFormat = ReportFormat.MARKDOWN
    runner_command: str = Field(
        default="npx playwright test",
        description="Command that executes the test suite",
    )
    heal_enabled: bool = True
    rca_enabled: bool = True
    prompts_dir: Path = Field(
        default=Path("prompts"),
        description="Directory with one sub-directory of prompt files per framework",
    )
    style: FrameworkStyle = FrameworkStyle.NATIVE

    # Config file path
    config_file: Path | None = None

    @field_validator("run_name")
    @classmethod
    def validate_run_name_field(cls, v: str | None) -> str | None:
        """Reject unsafe run names as early as configuration time."""
        if v is None or v == "":
            return None
        return validate_run_name(v)

    def resolved_prompts_dir(self) -> Path:
        if self.prompts_dir.is_absolute():
            return self.prompts_dir
        return self.base_dir / self.prompts_dir


def _read_yaml(path: Path) -> dict[str, Any]:
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def load_settings(config_file: Path | str | None = None) -> MindTraceSettings:
    """
    Load settings from file and environment.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (explicit path, else the first standard location found)
    3. Defaults

    Args:
        config_file: Optional path to YAML config file

    Returns:
        Complete MindTraceSettings instance
    """
    env_settings = MindTraceSettings()
    config_file = config_file or env_settings.config_file

    file_config: dict[str, Any] = {}
    config_path: Path | None = None

    if config_file:
        config_path = Path(config_file)
        if config_path.exists():
            file_config = _read_yaml(config_path)
        else:
            logger.warning("Config file not found", path=str(config_path))
    else:
        for path in STANDARD_CONFIG_PATHS:
            if path.exists():
                config_path = path
                file_config = _read_yaml(path)
                break

    env_values = {name: getattr(env_settings, name) for name in env_settings.model_fields_set}

    merged = {key: value for key, value in file_config.items() if key in MindTraceSettings.model_fields}
    merged.update(env_values)
    if config_path is not None:
        merged.setdefault("config_file", config_path)

    settings = MindTraceSettings(**merged)
    logger.debug(
        "Settings loaded",
        config_file=str(config_path) if config_path else None,
        base_dir=str(settings.base_dir),
        style=str(settings.style),
    )
    return settings
