"""
HTTP scrape endpoint for a Telemetry instance.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST

from shared.errors import ErrorResponse
from shared.logging import configure_logging, get_logger

from . import __version__
from .main import Telemetry


def create_app(telemetry: Telemetry) -> FastAPI:
    """Create a FastAPI app serving ``/metrics`` and ``/health``.

    The app starts the telemetry on startup and shuts it down on shutdown.
    """
    logger = get_logger("telemetry.server")
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await telemetry.start()
        yield
        await telemetry.shutdown()

    app = FastAPI(
        title=f"{telemetry.name.title()} Telemetry",
        description="Prometheus scrape endpoint",
        version=__version__,
        docs_url="/docs" if telemetry.config.env == "local" else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "service": telemetry.name,
            "status": "ok",
            "uptime_seconds": time.time() - started_at,
            "metrics": len(telemetry.batcher.checkpoint_set()),
            "version": __version__
        }

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(
            content=await telemetry.collect(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle errors raised while serving a request, e.g. a failed collection."""
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                code="INTERNAL_ERROR",
                message="Internal server error"
            ).model_dump()
        )

    return app


def run(telemetry: Optional[Telemetry] = None):
    """Serve the scrape endpoint with uvicorn."""
    import uvicorn

    telemetry = telemetry or Telemetry()
    configure_logging(telemetry.name, telemetry.config.log_level)
    uvicorn.run(
        create_app(telemetry),
        host=telemetry.config.host,
        port=telemetry.config.port,
        log_level=telemetry.config.log_level.lower()
    )
