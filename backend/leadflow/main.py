"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from leadflow.api.errors import register_exception_handlers
from leadflow.api.v1 import entities, steps, templates
from leadflow.core.config import settings
from leadflow.core.logging import get_logger, setup_logging
from leadflow.resilience.fallback import FallbackStore
from leadflow.resilience.gateway import WorkflowGateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging(
        "DEBUG" if settings.APP_ENV == "development" else settings.LOG_LEVEL,
        json_logs=settings.APP_ENV != "development",
    )
    logger = get_logger("startup")
    logger.info("Application starting", env=settings.APP_ENV)

    if getattr(app.state, "gateway", None) is None:
        from leadflow.db.session import engine

        app.state.gateway = WorkflowGateway(engine, fallback=FallbackStore())

    gateway: WorkflowGateway = app.state.gateway
    if settings.SCHEMA_ENSURE_ON_STARTUP:
        health = await gateway.store_health()
        if health.available:
            await gateway.ensure_schema()
        else:
            logger.warning("Store unavailable at startup, schema ensure skipped", error=health.error)

    yield

    await gateway.engine.dispose()
    logger.info("Application shutting down")


def create_app(gateway: WorkflowGateway | None = None) -> FastAPI:
    """Build the app; tests pass their own gateway (own engine and fallback store)."""
    app = FastAPI(
        title="Leadflow Workflow API",
        description="Template-driven step workflows and probability tracking for Leads and VCs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    api_prefix = "/api/v1"
    app.include_router(entities.leads_router, prefix=api_prefix)
    app.include_router(entities.vcs_router, prefix=api_prefix)
    app.include_router(steps.router, prefix=api_prefix)
    app.include_router(templates.router, prefix=api_prefix)

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Process liveness; does not touch the store."""
        return {"status": "ok", "env": settings.APP_ENV}

    @app.get("/health/store", tags=["Health"])
    async def store_health(request: Request) -> dict[str, object]:
        """Store reachability as seen by the gateway's probe."""
        health = await request.app.state.gateway.store_health()
        return {
            "available": health.available,
            "latency_ms": health.latency_ms,
            "error": health.error,
            "fallback_enabled": settings.FALLBACK_ENABLED,
        }

    return app


app = create_app()
