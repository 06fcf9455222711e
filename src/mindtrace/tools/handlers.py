"""
Tool handlers and their input contracts.

Handlers are bound methods of ToolHandlers so every tool shares the same
settings and runtime components. create_default_registry wires them into a
ToolRegistry at process start.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mindtrace.config import FrameworkStyle, MindTraceSettings
from mindtrace.runtime.artifacts import REQUIRED_ARTIFACTS, ArtifactStore
from mindtrace.runtime.classifier import FailureClassifier, FailureContext, RuleBasedClassifier
from mindtrace.runtime.layout import resolve_run_layout
from mindtrace.selectors.healing import PageSnapshot, SelectorHealer, SnapshotSelectorHealer
from mindtrace.selectors.ranking import SelectorRankingEngine
from mindtrace.tools.architecture import ArchitectureValidator
from mindtrace.tools.prompts import FRAMEWORK_DESCRIPTIONS, PromptLibrary
from mindtrace.tools.registry import ToolRegistry, ToolSpec
from mindtrace.tools.runs import RunCatalog

logger = structlog.get_logger(__name__)

_ARTIFACT_NAMES = {spec.filename for spec in REQUIRED_ARTIFACTS}


class ToolInput(BaseModel):
    """Base for tool inputs: camelCase on the wire, unknown keys rejected."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ListFrameworksInput(ToolInput):
    pass


class ListPromptsInput(ToolInput):
    framework: FrameworkStyle


class RoutePromptInput(ToolInput):
    framework: FrameworkStyle
    message: str
    style: str | None = None


class CreateRunInput(ToolInput):
    framework: FrameworkStyle
    message: str
    run_name: str | None = Field(default=None, alias="runName")
    style: str | None = None


class GetRunInput(ToolInput):
    run_name: str = Field(alias="runName")


class HealSelectorInput(ToolInput):
    selector: str = Field(min_length=1)
    page_context: PageSnapshot = Field(alias="pageContext")
    error_message: str | None = Field(default=None, alias="errorMessage")


class ClassifyFailureInput(ToolInput):
    test_context: FailureContext = Field(alias="testContext")
    run_name: str | None = Field(
        default=None,
        alias="runName",
        description="When set, the classification is stored as the run's root cause summary",
    )


class GenerateArtifactsInput(ToolInput):
    run_name: str = Field(alias="runName")
    artifact_types: list[str] | None = Field(default=None, alias="artifactTypes")

    @field_validator("artifact_types")
    @classmethod
    def validate_artifact_types(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        unknown = sorted(set(v) - _ARTIFACT_NAMES)
        if unknown:
            raise ValueError(f"Unknown artifact types: {', '.join(unknown)}")
        return v


class RankSelectorsInput(ToolInput):
    selectors: list[str]
    page_context: dict[str, Any] | None = Field(default=None, alias="pageContext")


class ValidateArchitectureInput(ToolInput):
    framework: FrameworkStyle
    test_files: list[str] = Field(alias="testFiles")


class ToolHandlers:
    """Implements every tool on top of the runtime components."""

    def __init__(
        self,
        settings: MindTraceSettings,
        store: ArtifactStore | None = None,
        ranking: SelectorRankingEngine | None = None,
        healer: SelectorHealer | None = None,
        classifier: FailureClassifier | None = None,
    ) -> None:
        self.settings = settings
        self.store = store or ArtifactStore()
        self.ranking = ranking or SelectorRankingEngine()
        self.healer = healer or SnapshotSelectorHealer(ranking=self.ranking)
        self.classifier = classifier or RuleBasedClassifier()
        self.prompts = PromptLibrary(settings.resolved_prompts_dir())
        self.runs = RunCatalog(settings.base_dir, self.prompts)
        self.architecture = ArchitectureValidator(settings.base_dir)

    def list_frameworks(self, params: ListFrameworksInput) -> dict[str, Any]:
        return {
            "frameworks": self.prompts.list_frameworks(),
            "descriptions": {str(k): v for k, v in FRAMEWORK_DESCRIPTIONS.items()},
        }

    def list_prompts(self, params: ListPromptsInput) -> dict[str, Any]:
        prompts = self.prompts.list_prompts(params.framework)
        return {
            "framework": str(params.framework),
            "prompts": [{"name": path.name, "path": str(path)} for path in prompts],
        }

    def route_prompt(self, params: RoutePromptInput) -> dict[str, Any]:
        return self.prompts.route(params.framework, params.message, params.style).to_dict()

    def create_run(self, params: CreateRunInput) -> dict[str, Any]:
        layout, metadata, active_prompt_path = self.runs.create_run(
            str(params.framework), params.message, run_name=params.run_name, style=params.style
        )
        return {
            "runName": metadata.run_name,
            "runDir": str(layout.run_root),
            "activePromptPath": str(active_prompt_path),
            "metadata": metadata.to_dict(),
        }

    def get_run(self, params: GetRunInput) -> dict[str, Any]:
        metadata, prompt_content = self.runs.get_run(params.run_name)
        return {
            "runName": params.run_name,
            "promptContent": prompt_content,
            "metadata": metadata.to_dict(),
        }

    def heal_selector(self, params: HealSelectorInput) -> dict[str, Any]:
        if not self.settings.heal_enabled:
            return {"originalSelector": params.selector, "healedSelector": None, "disabled": True}
        proposal = self.healer.heal(params.selector, params.page_context, params.error_message)
        return proposal.to_dict()

    def classify_failure(self, params: ClassifyFailureInput) -> dict[str, Any]:
        classification = self.classifier.classify(params.test_context)
        result = classification.to_dict()
        if params.run_name:
            layout = resolve_run_layout(self.settings.base_dir, params.run_name)
            result["stored"] = self.store.store_classification(layout, classification)
        return result

    def generate_artifacts(self, params: GenerateArtifactsInput) -> dict[str, Any]:
        layout = resolve_run_layout(self.settings.base_dir, params.run_name)
        store = self.store
        if params.artifact_types is not None:
            wanted = set(params.artifact_types)
            store = ArtifactStore(tuple(spec for spec in self.store.artifacts if spec.filename in wanted))
        created = store.ensure_default_artifacts(layout)
        return {
            "runName": params.run_name,
            "artifactsDir": str(layout.artifacts_dir),
            "generated": created,
        }

    def rank_selectors(self, params: RankSelectorsInput) -> dict[str, Any]:
        return {"rankings": [scored.to_dict() for scored in self.ranking.rank(params.selectors)]}

    def validate_architecture(self, params: ValidateArchitectureInput) -> dict[str, Any]:
        return self.architecture.validate(params.framework, params.test_files).to_dict()


def create_default_registry(
    settings: MindTraceSettings | None = None,
    handlers: ToolHandlers | None = None,
) -> ToolRegistry:
    """Create a registry with every MindTrace tool."""
    handlers = handlers or ToolHandlers(settings or MindTraceSettings())

    registry = ToolRegistry()
    registry.register_many(
        [
            ToolSpec(
                "list_frameworks",
                "List all available automation frameworks (native, bdd, pom-bdd)",
                ListFrameworksInput,
                handlers.list_frameworks,
            ),
            ToolSpec(
                "list_prompts",
                "List all prompt files for a given framework",
                ListPromptsInput,
                handlers.list_prompts,
            ),
            ToolSpec(
                "route_prompt",
                "Route a user message to the correct prompt for a framework",
                RoutePromptInput,
                handlers.route_prompt,
            ),
            ToolSpec(
                "create_run",
                "Create a new test run with the routed prompt",
                CreateRunInput,
                handlers.create_run,
            ),
            ToolSpec(
                "get_run",
                "Get the metadata and active prompt of a run",
                GetRunInput,
                handlers.get_run,
            ),
            ToolSpec(
                "heal_selector",
                "Propose a replacement for a failed selector from a page snapshot",
                HealSelectorInput,
                handlers.heal_selector,
            ),
            ToolSpec(
                "classify_failure",
                "Classify a test failure from its collected context",
                ClassifyFailureInput,
                handlers.classify_failure,
            ),
            ToolSpec(
                "generate_artifacts",
                "Write default artifacts for a run where they are missing",
                GenerateArtifactsInput,
                handlers.generate_artifacts,
            ),
            ToolSpec(
                "rank_selectors",
                "Rank selectors by stability, specificity, maintainability and performance",
                RankSelectorsInput,
                handlers.rank_selectors,
            ),
            ToolSpec(
                "validate_architecture",
                "Validate test files against framework contracts",
                ValidateArchitectureInput,
                handlers.validate_architecture,
            ),
        ]
    )

    logger.debug("Tool registry created", tools=len(registry))
    return registry
