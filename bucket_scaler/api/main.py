"""
FastAPI application for the Bucket Scaler.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from bucket_scaler.execution.store import DecisionStore
from bucket_scaler.monitoring.metrics import ScalerMetrics
from bucket_scaler.services.registry import TriggerRegistry, gcs_source_factory
from bucket_scaler.utils.logging import get_logger, setup_logging
from config.settings import get_settings

from .dependencies import get_metrics
from .middleware import RequestContextMiddleware
from .routes import health, triggers

logger = get_logger(__name__)


def create_app(
    registry: TriggerRegistry | None = None,
    store: DecisionStore | None = None,
    metrics: ScalerMetrics | None = None,
    triggers_file: Path | None = None,
) -> FastAPI:
    """
    Create the application.

    Components not passed in are built from settings. Trigger definitions
    from ``triggers_file`` (or the configured file) are registered at
    startup; an invalid definition aborts startup.
    """
    settings = get_settings()
    metrics = metrics or ScalerMetrics(prefix=settings.metrics.prefix)
    store = store or DecisionStore(metrics)
    registry = registry or TriggerRegistry(
        sink=store,
        source_factory=gcs_source_factory(
            settings.gcs, settings.controller.fetch_timeout_seconds
        ),
        controller_settings=settings.controller,
        metrics=metrics,
    )
    definitions_path = triggers_file or settings.triggers_file

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup and shutdown."""
        logger.info("Starting Bucket Scaler", env=settings.env)

        if definitions_path:
            await registry.load_file(definitions_path)

        await registry.start()
        logger.info("Bucket Scaler started", triggers=len(registry))

        yield

        logger.info("Shutting down Bucket Scaler")
        await registry.stop()
        logger.info("Bucket Scaler shutdown complete")

    app = FastAPI(
        title="Bucket Scaler",
        description="Object-count driven replica scaling triggers",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.registry = registry
    app.state.store = store
    app.state.metrics = metrics

    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler."""
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.get("/metrics")
    async def prometheus_metrics(
        exporter: ScalerMetrics = Depends(get_metrics),
    ) -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=exporter.export(), media_type=exporter.content_type)

    app.include_router(health.router)
    app.include_router(triggers.router, prefix="/api/v1")

    return app


def main() -> None:
    """Entry point for running the application."""
    import uvicorn

    settings = get_settings()
    setup_logging()

    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
