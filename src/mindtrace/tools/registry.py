"""
Tool registry with an explicit dispatch table.

Each tool is registered once at process start with its handler and the
pydantic model that validates its input. Dispatch is a dictionary lookup.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from mindtrace.runtime.errors import MindTraceError

logger = structlog.get_logger(__name__)

# Handler receives the validated input model and returns a JSON-ready dict
HandlerFunc = Callable[[Any], dict[str, Any]]


class ToolError(MindTraceError):
    """Base class for errors raised at the tool boundary."""

    pass


class UnknownToolError(ToolError):
    """Raised when dispatching a tool name that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolInputError(ToolError):
    """Raised when tool arguments fail validation."""

    def __init__(self, name: str, errors: list[dict[str, Any]]) -> None:
        self.name = name
        self.errors = errors
        fields = ", ".join(".".join(str(loc) for loc in err.get("loc", ())) or "input" for err in errors)
        super().__init__(f"Invalid input for tool {name}: {fields}")


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A named tool: description, input contract and handler."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: HandlerFunc

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(by_alias=True),
        }


class ToolRegistry:
    """Registry for tool handlers keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._log = logger.bind(component="tool_registry")

    def register(self, spec: ToolSpec) -> None:
        """Register a tool; a later registration with the same name replaces it."""
        self._tools[spec.name] = spec

    def register_many(self, specs: list[ToolSpec]) -> None:
        for spec in specs:
            self.register(spec)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Validate arguments and call the tool's handler.

        Args:
            name: Tool name
            arguments: Raw tool arguments

        Returns:
            The handler's JSON-ready result

        Raises:
            UnknownToolError: If no tool is registered under name
            ToolInputError: If arguments do not match the input model
        """
        spec = self._tools.get(name)
        if spec is None:
            self._log.warning("Unknown tool requested", tool=name)
            raise UnknownToolError(name)

        try:
            params = spec.input_model.model_validate(arguments or {})
        except ValidationError as e:
            self._log.warning("Invalid tool input", tool=name, errors=e.error_count())
            raise ToolInputError(name, e.errors(include_url=False, include_context=False)) from e

        self._log.info("Dispatching tool", tool=name)
        return spec.handler(params)

    def describe(self) -> list[dict[str, Any]]:
        """Describe every registered tool, in registration order."""
        return [spec.describe() for spec in self._tools.values()]

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)
