"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from agriverify.pipeline.orchestrator import EvaluationOrchestrator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_orchestrator(request: Request) -> EvaluationOrchestrator:
    """Provide the process-wide evaluation orchestrator"""
    return request.app.state.orchestrator
