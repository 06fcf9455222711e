"""
Prompt library: per-framework markdown prompt templates.

Directory structure:
    {prompts_dir}/
        native/
            main.md
            ...
        bdd/
        pom-bdd/
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from mindtrace.config import FrameworkStyle
from mindtrace.tools.registry import ToolError

logger = structlog.get_logger(__name__)

PROMPT_SUFFIX = ".md"
MAIN_PROMPT_MARKER = "main"

FRAMEWORK_DESCRIPTIONS: dict[str, str] = {
    FrameworkStyle.NATIVE: "Playwright Native Test Runner - Fast setup, developer-centric",
    FrameworkStyle.BDD: "Playwright + Cucumber BDD - Business-readable, stakeholder-friendly",
    FrameworkStyle.POM_BDD: "Playwright + POM + Cucumber - Enterprise-scale, long-term maintainability",
}

_WORD_PATTERN = re.compile(r"[a-z0-9]+")


class PromptNotFoundError(ToolError):
    """Raised when a framework has no prompt directory or no prompts."""

    pass


@dataclass(frozen=True, slots=True)
class PromptRoute:
    """The prompt selected for a message."""

    framework: str
    selected_prompt: str
    prompt_path: Path
    prompt_content: str
    confidence: float
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework,
            "selectedPrompt": self.selected_prompt,
            "promptPath": str(self.prompt_path),
            "promptContent": self.prompt_content,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


class PromptLibrary:
    """Lists and routes prompt files under a prompts directory."""

    def __init__(self, prompts_dir: str | Path) -> None:
        self.prompts_dir = Path(prompts_dir)
        self._log = logger.bind(component="prompt_library")

    def list_frameworks(self) -> list[str]:
        """Framework names that have a prompt directory."""
        if not self.prompts_dir.is_dir():
            return []
        return sorted(path.name for path in self.prompts_dir.iterdir() if path.is_dir())

    def list_prompts(self, framework: str) -> list[Path]:
        """
        Prompt files for a framework, sorted by name.

        Raises:
            PromptNotFoundError: If the framework directory does not exist
        """
        framework_dir = self.prompts_dir / framework
        if not framework_dir.is_dir():
            raise PromptNotFoundError(f"Framework directory not found: {framework}")
        return sorted(
            path for path in framework_dir.iterdir() if path.is_file() and path.suffix == PROMPT_SUFFIX
        )

    def route(self, framework: str, message: str, style: str | None = None) -> PromptRoute:
        """
        Select the prompt for a message.

        Order of preference:
        1. A prompt whose name contains the style override
        2. The prompt whose name shares the most words with the message
        3. The main prompt, else the first prompt by name

        Raises:
            PromptNotFoundError: If the framework has no prompts
        """
        prompts = self.list_prompts(framework)
        if not prompts:
            raise PromptNotFoundError(f"No prompts found for framework: {framework}")

        selected, confidence, reasoning = self._select(prompts, message, style)
        self._log.info("Prompt routed", framework=framework, prompt=selected.name, confidence=confidence)

        return PromptRoute(
            framework=framework,
            selected_prompt=selected.name,
            prompt_path=selected,
            prompt_content=selected.read_text(encoding="utf-8"),
            confidence=confidence,
            reasoning=reasoning,
        )

    @staticmethod
    def _select(
        prompts: list[Path], message: str, style: str | None
    ) -> tuple[Path, float, str]:
        if style:
            wanted = style.lower()
            for prompt in prompts:
                if wanted in prompt.name.lower():
                    return prompt, 0.95, f"Routed to {prompt.name} by style override {style!r}"

        message_words = set(_WORD_PATTERN.findall(message.lower()))
        best: tuple[int, Path] | None = None
        for prompt in prompts:
            prompt_words = set(_WORD_PATTERN.findall(prompt.stem.lower())) - {MAIN_PROMPT_MARKER}
            overlap = len(prompt_words & message_words)
            if overlap and (best is None or overlap > best[0]):
                best = (overlap, prompt)
        if best is not None:
            return best[1], 0.8, f"Routed to {best[1].name} by keywords in the message"

        main = next((p for p in prompts if MAIN_PROMPT_MARKER in p.name.lower()), None)
        if main is not None:
            return main, 0.6, f"Routed to the main prompt {main.name}"
        return prompts[0], 0.5, f"No main prompt; routed to {prompts[0].name}"
