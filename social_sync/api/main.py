"""
FastAPI Application
===================

HTTP surface of the social image pipeline: the on-demand image endpoint,
sync triggers and status, and health.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from social_sync.config.settings import get_settings, Settings
from social_sync.config.logging import get_logger, setup_logging
from social_sync.core.errors import BrowserUnavailable, RenderFailed
from social_sync.core.services import Services, create_services
from social_sync.models.schemas import ErrorResponse
from social_sync.api.routes import health, social_image, sync

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings, defaults to the global settings
        services: Prebuilt services; built in the lifespan when omitted
    """
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting social image API", environment=settings.environment)
        app.state.services = services or create_services(settings)
        try:
            yield
        finally:
            logger.info("Shutting down social image API")
            try:
                await app.state.services.close()
            except Exception as e:
                logger.error("Error closing services", error=str(e))

    app = FastAPI(
        title=settings.app_name,
        description="Social preview image generation and sync",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore
        """Add request ID to all requests."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    def error_response(
        request: Request,
        status_code: int,
        message: str,
        error_code: str,
        exc: Exception,
        expose: bool = True,
    ) -> JSONResponse:
        body = ErrorResponse(
            error=message,
            error_code=error_code,
            details={"message": str(exc)} if expose else None,
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """HTTP exceptions as structured error responses."""
        body = ErrorResponse(
            error=str(exc.detail),
            error_code=str(exc.status_code),
            request_id=getattr(request.state, "request_id", None),
        )
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            request_id=body.request_id,
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    @app.exception_handler(BrowserUnavailable)
    async def browser_unavailable_handler(request: Request, exc: BrowserUnavailable) -> JSONResponse:
        logger.error("Browser unavailable", error=str(exc))
        return error_response(
            request,
            503,
            "Browser is not available. Please try again later.",
            "BROWSER_UNAVAILABLE",
            exc,
        )

    @app.exception_handler(RenderFailed)
    async def render_failed_handler(request: Request, exc: RenderFailed) -> JSONResponse:
        logger.error("Render failed", artifact=exc.artifact, error=str(exc))
        return error_response(
            request, 500, "Failed to generate social image.", "RENDER_FAILED", exc
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """General exception handler for unexpected errors."""
        logger.error(
            "Unhandled exception",
            exception=str(exc),
            request_id=getattr(request.state, "request_id", None),
            exc_info=True,
        )
        return error_response(
            request, 500, "Internal server error", "INTERNAL_ERROR", exc, expose=settings.debug
        )

    app.include_router(health.router)
    app.include_router(social_image.router)
    app.include_router(sync.router)

    return app


def run_development_server(settings: Optional[Settings] = None) -> None:
    """Run the API with uvicorn."""
    settings = settings or get_settings()
    setup_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
