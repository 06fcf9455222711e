"""
Tool boundary for external callers.

Every operation is an entry in an explicit dispatch table (name -> handler +
pydantic input model), served over HTTP by mindtrace.api.
"""

from mindtrace.tools.architecture import ArchitectureReport, ArchitectureValidator, Violation
from mindtrace.tools.handlers import ToolHandlers, create_default_registry
from mindtrace.tools.prompts import PromptLibrary, PromptNotFoundError, PromptRoute
from mindtrace.tools.registry import (
    ToolError,
    ToolInputError,
    ToolRegistry,
    ToolSpec,
    UnknownToolError,
)
from mindtrace.tools.runs import RunCatalog, RunMetadata, RunNotFoundError

__all__ = [
    # Registry
    "ToolRegistry",
    "ToolSpec",
    "ToolHandlers",
    "create_default_registry",
    # Components
    "ArchitectureReport",
    "ArchitectureValidator",
    "PromptLibrary",
    "PromptRoute",
    "RunCatalog",
    "RunMetadata",
    "Violation",
    # Errors
    "PromptNotFoundError",
    "RunNotFoundError",
    "ToolError",
    "ToolInputError",
    "UnknownToolError",
]
