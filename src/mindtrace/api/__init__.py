"""HTTP API exposing the MindTrace tool registry."""

from mindtrace.api.main import create_app, run_server

__all__ = ["create_app", "run_server"]
