"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import Response

from agriverify.api.middleware import RequestIDMiddleware, MetricsMiddleware
from agriverify.api.v1 import applications, reports
from agriverify.domain.exceptions import PersistenceFailure
from agriverify.infrastructure.database.session import SessionLocal, init_db
from agriverify.infrastructure.observability.logging import setup_logging
from agriverify.pipeline.orchestrator import EvaluationOrchestrator
from agriverify.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator: EvaluationOrchestrator = app.state.orchestrator

    # Records left PROCESSING by a previous crash
    try:
        init_db()
        orchestrator.fail_stale_evaluations()
    except (SQLAlchemyError, PersistenceFailure) as e:
        logging.error(f"Startup database tasks skipped: {e}")

    yield

    await orchestrator.shutdown()


def create_app(orchestrator: EvaluationOrchestrator | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="AgriVerify Gateway",
        description="Land-size fraud verification for agricultural loans",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or EvaluationOrchestrator(SessionLocal)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(applications.router, prefix="/v1", tags=["applications"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
