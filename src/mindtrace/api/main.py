"""
FastAPI application for MindTrace.

Serves the tool registry over HTTP:
- GET /tools lists every tool with its input schema
- POST /tools/{name} dispatches a tool call
- GET /health reports liveness
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel

from mindtrace import __version__
from mindtrace.config import MindTraceSettings, load_settings
from mindtrace.runtime.errors import InvalidRunNameError, MindTraceError
from mindtrace.tools.handlers import create_default_registry
from mindtrace.tools.prompts import PromptNotFoundError
from mindtrace.tools.registry import ToolInputError, ToolRegistry, UnknownToolError
from mindtrace.tools.runs import RunNotFoundError

logger = structlog.get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    version: str
    tools: int


class ToolCallResponse(BaseModel):
    """Result of a tool call."""

    tool: str
    result: dict[str, Any]


def create_app(
    settings: MindTraceSettings | None = None,
    registry: ToolRegistry | None = None,
) -> FastAPI:
    """Create FastAPI application."""
    settings = settings or load_settings()
    registry = registry or create_default_registry(settings)
    log = logger.bind(component="api")

    app = FastAPI(
        title="MindTrace API",
        description="Run governance, failure classification and selector healing tools",
        version=__version__,
    )
    app.state.settings = settings
    app.state.registry = registry

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(UTC),
            version=__version__,
            tools=len(registry),
        )

    @app.get("/tools")
    async def list_tools() -> dict[str, Any]:
        """List registered tools and their input schemas."""
        return {"tools": registry.describe()}

    @app.post("/tools/{name}", response_model=ToolCallResponse)
    def call_tool(name: str, arguments: dict[str, Any] | None = Body(default=None)) -> ToolCallResponse:
        """Dispatch a tool call."""
        try:
            result = registry.dispatch(name, arguments)
        except UnknownToolError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ToolInputError as e:
            raise HTTPException(status_code=422, detail={"message": str(e), "errors": e.errors}) from e
        except (PromptNotFoundError, RunNotFoundError) as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except InvalidRunNameError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except MindTraceError as e:
            log.error("Tool call failed", tool=name, error=str(e))
            raise HTTPException(status_code=500, detail=str(e)) from e

        return ToolCallResponse(tool=name, result=result)

    log.info("MindTrace API created", tools=registry.tool_names)
    return app


def run_server(host: str = "127.0.0.1", port: int = 8080) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run(
        "mindtrace.api.main:create_app",
        host=host,
        port=port,
        factory=True,
        reload=os.environ.get("DEBUG", "false").lower() == "true",
    )


if __name__ == "__main__":
    run_server()
