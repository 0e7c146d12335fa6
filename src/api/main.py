# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - FastAPI Application
# Main API entry point
# ═══════════════════════════════════════════════════════════════

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from ..core.config import Settings, get_settings
from ..core.exceptions import LeakdexException, SourceError
from ..core.ingest import DocumentSink, ElasticsearchSink, IngestionPipeline
from ..core.logging import configure_logging, get_logger
from .routes import router

logger = get_logger("api")


def create_app(
    settings: Optional[Settings] = None,
    sink: Optional[DocumentSink] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings override (default: environment)
        sink: Sink override; an ElasticsearchSink is built from settings otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application lifespan manager."""
        configure_logging(settings.log_level, json_format=settings.log_json)

        document_sink = sink or ElasticsearchSink.from_settings(settings)
        if not await document_sink.health_check():
            logger.warning(f"Sink '{document_sink.sink_name}' unreachable at startup")
        elif not await document_sink.prepare():
            logger.warning(f"Sink '{document_sink.sink_name}' could not be prepared at startup")

        app.state.sink = document_sink
        app.state.pipeline = IngestionPipeline(document_sink, settings=settings)
        logger.info(f"LEAKDEX API started (sink={document_sink.sink_name})")

        yield

        logger.info("Shutting down LEAKDEX, waiting for pending upserts...")
        await app.state.pipeline.wait_pending()
        await document_sink.close()
        logger.info("LEAKDEX shutdown complete")

    app = FastAPI(
        title="LEAKDEX",
        description="Breach dump ingestion into a searchable index",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Wildcard origins cannot be combined with credentials
    cors_origins = settings.cors_origins_list
    allow_creds = False if "*" in cors_origins else True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_creds,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    app.include_router(router, prefix="/api/v1")

    @app.exception_handler(SourceError)
    async def source_error_handler(request: Request, exc: SourceError):
        logger.warning(f"Source error: {exc.message}")
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(LeakdexException)
    async def leakdex_error_handler(request: Request, exc: LeakdexException):
        logger.error(f"Unhandled LEAKDEX error: {exc.message}", exc_info=True)
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "name": "LEAKDEX",
            "version": "1.0.0",
            "status": "operational"
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        sink_healthy = False
        sink_info = {}
        document_sink = getattr(request.app.state, "sink", None)
        if document_sink is not None:
            sink_healthy = await document_sink.health_check()
            sink_info = document_sink.get_connection_info()

        return {
            "status": "healthy" if sink_healthy else "degraded",
            "components": {
                "api": "healthy",
                "sink": "healthy" if sink_healthy else "unhealthy",
            },
            "sink_info": sink_info,
        }

    return app


# Create app instance
app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``leakdex-api``)."""
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())
