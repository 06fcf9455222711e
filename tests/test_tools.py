"""Tests for the tool registry, tool handlers and the HTTP API."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from mindtrace.api.main import create_app
from mindtrace.config import MindTraceSettings
from mindtrace.runtime.artifacts import ROOT_CAUSE_SUMMARY
from mindtrace.tools.architecture import ArchitectureValidator
from mindtrace.tools.handlers import create_default_registry
from mindtrace.tools.prompts import PromptLibrary, PromptNotFoundError
from mindtrace.tools.registry import ToolInputError, ToolRegistry, ToolSpec, UnknownToolError
from mindtrace.tools.runs import RunCatalog, RunNotFoundError, generate_run_name


@pytest.fixture
def prompts_dir(temp_dir: Path) -> Path:
    """Prompt library with two native prompts and one bdd prompt."""
    root = temp_dir / "prompts"
    (root / "native").mkdir(parents=True)
    (root / "bdd").mkdir()
    (root / "native" / "main.md").write_text("# Native main prompt\n")
    (root / "native" / "login-flow.md").write_text("# Login flow prompt\n")
    (root / "bdd" / "main.md").write_text("# BDD main prompt\n")
    return root


@pytest.fixture
def settings(temp_dir: Path, prompts_dir: Path) -> MindTraceSettings:
    return MindTraceSettings(base_dir=temp_dir, prompts_dir=prompts_dir)


@pytest.fixture
def registry(settings: MindTraceSettings) -> ToolRegistry:
    return create_default_registry(settings)


@pytest.fixture
def client(settings: MindTraceSettings) -> TestClient:
    return TestClient(create_app(settings=settings))


class EchoInput(BaseModel):
    value: int


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_dispatch(self) -> None:
        """Test arguments are validated into the input model."""
        registry = ToolRegistry()
        registry.register(ToolSpec("echo", "Echo", EchoInput, lambda params: {"value": params.value}))

        assert registry.dispatch("echo", {"value": "3"}) == {"value": 3}
        assert registry.has("echo")
        assert len(registry) == 1

    def test_unknown_tool(self) -> None:
        """Test dispatching an unregistered name."""
        with pytest.raises(UnknownToolError, match="Unknown tool: nope"):
            ToolRegistry().dispatch("nope")

    def test_invalid_input(self) -> None:
        """Test validation errors carry field locations."""
        registry = ToolRegistry()
        registry.register(ToolSpec("echo", "Echo", EchoInput, lambda params: {}))

        with pytest.raises(ToolInputError) as exc_info:
            registry.dispatch("echo", {"value": "x"})

        assert exc_info.value.errors[0]["loc"] == ("value",)

    def test_default_tools(self, registry: ToolRegistry) -> None:
        """Test every tool is registered with a schema."""
        assert registry.tool_names == [
            "list_frameworks",
            "list_prompts",
            "route_prompt",
            "create_run",
            "get_run",
            "heal_selector",
            "classify_failure",
            "generate_artifacts",
            "rank_selectors",
            "validate_architecture",
        ]
        schema = registry.get("create_run").describe()["inputSchema"]
        assert "runName" in schema["properties"]


class TestPromptLibrary:
    """Tests for PromptLibrary."""

    def test_list(self, prompts_dir: Path) -> None:
        """Test frameworks and prompts are listed by name."""
        library = PromptLibrary(prompts_dir)

        assert library.list_frameworks() == ["bdd", "native"]
        assert [p.name for p in library.list_prompts("native")] == ["login-flow.md", "main.md"]

    def test_missing_framework(self, prompts_dir: Path) -> None:
        with pytest.raises(PromptNotFoundError):
            PromptLibrary(prompts_dir).list_prompts("pom-bdd")

    @pytest.mark.parametrize(
        ("message", "style", "expected", "confidence"),
        [
            ("anything", "login", "login-flow.md", 0.95),
            ("write a LOGIN test", None, "login-flow.md", 0.8),
            ("write a checkout test", None, "main.md", 0.6),
        ],
    )
    def test_route(
        self, prompts_dir: Path, message: str, style: str | None, expected: str, confidence: float
    ) -> None:
        """Test routing preference order."""
        route = PromptLibrary(prompts_dir).route("native", message, style)

        assert route.selected_prompt == expected
        assert route.confidence == confidence
        assert route.prompt_content.startswith("#")


class TestRunCatalog:
    """Tests for RunCatalog."""

    def test_create_and_get(self, temp_dir: Path, prompts_dir: Path) -> None:
        """Test a created run can be read back."""
        catalog = RunCatalog(temp_dir, PromptLibrary(prompts_dir))
        layout, metadata, prompt_path = catalog.create_run("native", "login test", run_name="demo")

        assert prompt_path == layout.run_root / "prompts" / "active.md"
        assert metadata.selected_prompt == "login-flow.md"

        read_metadata, content = catalog.get_run("demo")
        assert read_metadata == metadata
        assert content == "# Login flow prompt\n"

    def test_get_unknown_run(self, temp_dir: Path, prompts_dir: Path) -> None:
        """Test reading a run that was never created."""
        with pytest.raises(RunNotFoundError):
            RunCatalog(temp_dir, PromptLibrary(prompts_dir)).get_run("missing")
        assert not (temp_dir / "runs" / "missing").exists()

    def test_generated_name(self) -> None:
        """Test the default run name format."""
        assert generate_run_name("bdd").startswith("run-bdd-")


class TestArchitectureValidator:
    """Tests for ArchitectureValidator."""

    def test_native(self, temp_dir: Path) -> None:
        """Test native spec files must import Playwright and avoid Cucumber."""
        (temp_dir / "good.spec.ts").write_text("import { test } from '@playwright/test';\n")
        (temp_dir / "bad.spec.ts").write_text(
            "import { expect } from 'vitest';\nimport { Given } from '@cucumber/cucumber';\n"
        )

        report = ArchitectureValidator(temp_dir).validate(
            "native", ["good.spec.ts", "bad.spec.ts", "missing.spec.ts"]
        )

        assert report.status == "failed"
        assert [(v.file, v.rule) for v in report.violations] == [
            ("bad.spec.ts", "playwright-import"),
            ("bad.spec.ts", "no-cucumber"),
            ("missing.spec.ts", "file-not-found"),
        ]
        assert report.violations[1].line == 2

    def test_bdd(self, temp_dir: Path) -> None:
        """Test features need a header and step files need steps."""
        (temp_dir / "login.feature").write_text("Feature: Login\n  Scenario: ok\n")
        (temp_dir / "login.steps.ts").write_text("Given('I am on the login page', async () => {});\n")

        report = ArchitectureValidator(temp_dir).validate("bdd", ["login.feature", "login.steps.ts"])

        assert report.status == "passed"
        assert report.to_dict()["violations"] == []

    def test_pom_bdd_flags_raw_page_calls(self, temp_dir: Path) -> None:
        """Test step definitions must go through page objects."""
        (temp_dir / "login.steps.ts").write_text(
            "When('I sign in', async function () {\n"
            "  await this.loginPage.signIn();\n"
            "  await page.locator('#submit').click();\n"
            "});\n"
        )

        report = ArchitectureValidator(temp_dir).validate("pom-bdd", ["login.steps.ts"])

        assert [(v.rule, v.line) for v in report.violations] == [("page-object", 3)]


class TestToolHandlers:
    """Tests for tool handlers dispatched through the registry."""

    def test_heal_selector(self, registry: ToolRegistry, sample_snapshot) -> None:
        """Test healing through the tool boundary."""
        result = registry.dispatch(
            "heal_selector",
            {"selector": "text=Sign in", "pageContext": sample_snapshot.model_dump(by_alias=True)},
        )
        assert result["healedSelector"] == '[data-testid="login-submit"]'

    def test_heal_selector_disabled(self, settings: MindTraceSettings) -> None:
        """Test healing can be switched off."""
        registry = create_default_registry(settings.model_copy(update={"heal_enabled": False}))
        result = registry.dispatch("heal_selector", {"selector": "#a", "pageContext": {}})
        assert result == {"originalSelector": "#a", "healedSelector": None, "disabled": True}

    def test_classify_and_store(
        self, registry: ToolRegistry, temp_dir: Path, sample_failure_context: dict[str, Any]
    ) -> None:
        """Test a classification is written once as the run's summary."""
        arguments = {"testContext": sample_failure_context, "runName": "ci-5"}

        first = registry.dispatch("classify_failure", arguments)
        second = registry.dispatch("classify_failure", arguments)

        assert first["category"] == "selector_failed"
        assert first["stored"] is True
        assert second["stored"] is False
        assert (temp_dir / "runs" / "ci-5" / "artifacts" / ROOT_CAUSE_SUMMARY).is_file()

    def test_generate_selected_artifacts(self, registry: ToolRegistry, temp_dir: Path) -> None:
        """Test only the requested artifact types are generated."""
        result = registry.dispatch(
            "generate_artifacts", {"runName": "ci-6", "artifactTypes": ["failure-narrative.md"]}
        )

        assert result["generated"] == ["failure-narrative.md"]
        assert sorted(p.name for p in (temp_dir / "runs" / "ci-6" / "artifacts").iterdir()) == [
            "failure-narrative.md"
        ]

    def test_unknown_artifact_type(self, registry: ToolRegistry) -> None:
        with pytest.raises(ToolInputError):
            registry.dispatch("generate_artifacts", {"runName": "ci-6", "artifactTypes": ["x.json"]})

    def test_rank_selectors(self, registry: ToolRegistry) -> None:
        result = registry.dispatch("rank_selectors", {"selectors": ["#id"]})
        assert result["rankings"][0]["score"] == 65


class TestApi:
    """Tests for the HTTP API."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["tools"] == 10

    def test_list_tools(self, client: TestClient) -> None:
        tools = client.get("/tools").json()["tools"]
        assert {tool["name"] for tool in tools} >= {"heal_selector", "rank_selectors"}

    def test_call_tool(self, client: TestClient) -> None:
        """Test a successful tool call."""
        response = client.post("/tools/list_frameworks", json={})

        assert response.status_code == 200
        assert response.json()["result"]["frameworks"] == ["bdd", "native"]

    def test_unknown_tool(self, client: TestClient) -> None:
        assert client.post("/tools/nope", json={}).status_code == 404

    def test_invalid_arguments(self, client: TestClient) -> None:
        """Test validation failures map to 422."""
        response = client.post("/tools/rank_selectors", json={"selectors": "not-a-list"})

        assert response.status_code == 422
        assert response.json()["detail"]["errors"]

    def test_invalid_run_name(self, client: TestClient) -> None:
        response = client.post("/tools/generate_artifacts", json={"runName": "../x"})
        assert response.status_code == 400

    def test_run_not_found(self, client: TestClient) -> None:
        response = client.post("/tools/get_run", json={"runName": "missing"})
        assert response.status_code == 404

    def test_create_run(self, client: TestClient, temp_dir: Path) -> None:
        """Test create_run followed by get_run over HTTP."""
        created = client.post(
            "/tools/create_run", json={"framework": "bdd", "message": "m", "runName": "r1"}
        ).json()["result"]
        fetched = client.post("/tools/get_run", json={"runName": "r1"}).json()["result"]

        assert created["metadata"]["selectedPrompt"] == "main.md"
        assert fetched["promptContent"] == "# BDD main prompt\n"
