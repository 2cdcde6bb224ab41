"""
FastAPI Application
==================

Main FastAPI application serving markup-to-image rendering.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from ogify.api.routes.health import router as health_router
from ogify.api.routes.image import router as image_router
from ogify.config.settings import get_settings
from ogify.config.logging import get_logger
from ogify.core.exceptions import EngineInitError, ImageGenerationError
from ogify.core.rendering.engines import close_engines, get_engine_initializer
from ogify.models.schemas import ErrorResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting FastAPI application")

    if settings.warmup_engines:
        try:
            await get_engine_initializer().ensure_ready()
            logger.info("Rendering engines initialized")
        except EngineInitError as e:
            # Requests retry the failed engines on demand
            logger.warning(
                "Engine warmup failed, continuing", failed_engines=e.failed_engines, error=str(e)
            )

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down FastAPI application")

        try:
            await close_engines()
            logger.info("Rendering engines closed")
        except Exception as e:
            logger.error("Error closing rendering engines", error=str(e))


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title="Ogify Image Service",
    description="Render HTML-like markup into SVG and PNG images",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_hosts,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.include_router(image_router)
app.include_router(health_router)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> JSONResponse:  # type: ignore
    """Add request ID to all requests."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)  # type: ignore
    response.headers["X-Request-ID"] = request_id  # type: ignore

    return response  # type: ignore


# Exception handlers
@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom HTTP exception handler with structured error response."""
    error_response = ErrorResponse(
        error=exc.detail,
        error_code=str(exc.status_code),
        details=None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.error(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=error_response.request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(ImageGenerationError)
async def image_generation_exception_handler(
    request: Request, exc: ImageGenerationError
) -> JSONResponse:
    """Handle image generation errors with their error codes."""
    error_message = str(exc)

    details: dict[str, Any] = {"message": error_message}
    if isinstance(exc, EngineInitError):
        details["failed_engines"] = list(exc.failed_engines)

    error_response = ErrorResponse(
        error=error_message,
        error_code=exc.error_code,
        details=details if settings.debug else None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.error(
        "Image generation error",
        error_code=exc.error_code,
        error_message=error_message,
        request_id=error_response.request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    error_response = ErrorResponse(
        error="Internal server error",
        error_code="INTERNAL_ERROR",
        details={"exception": str(exc)} if settings.debug else None,
        request_id=getattr(request.state, "request_id", None),
    )

    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=error_response.request_id,
        exc_info=True,
    )

    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


# Root endpoint
@app.get("/", tags=["General"])
async def root() -> dict[str, Any]:
    """
    Root endpoint with basic API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Render HTML-like markup into SVG and PNG images",
        "docs_url": "/docs" if settings.debug else None,
        "health_check": "/api/v1/health",
        "endpoints": {
            "render_image": "POST /api/v1/image",
        },
    }


# Development server runner
def run_development_server() -> None:
    """Run development server with auto-reload."""
    uvicorn.run(
        "ogify.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


def create_app() -> FastAPI:
    """
    Application factory function for creating FastAPI app instance.
    Used by integration tests and external deployment scripts.

    Returns:
        FastAPI application instance
    """
    return app


if __name__ == "__main__":
    run_development_server()
