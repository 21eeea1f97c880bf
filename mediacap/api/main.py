"""FastAPI application for the media capture service.

This module configures the FastAPI application with middleware, error
handling, the shared capture service lifecycle and OpenAPI documentation.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..relay.fetcher import RelayError
from ..sessions.registry import SessionNotFoundError
from .dependencies import get_capture_service, shutdown_capture_service
from .routes import proxy_router, sessions_router, viewer_router
from .schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

# Application metadata
APP_VERSION = __version__
APP_TITLE = "Media Capture API"
APP_DESCRIPTION = """
Media Capture renders a web page in a headless browser and reports the media
resources (video, audio, images) it loads, live.

## Features

* **Capture Sessions**: Start a background capture of any page and follow it
* **Live Results**: Server-sent events replay everything found so far, then stream new finds
* **Deduplication**: One result per canonical URL, trusted CDN hosts listed first
* **Relay**: Fetch found media server-side for clients blocked by hotlink protection
"""


def _error_response(request: Request, status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details,
            request_id=getattr(request.state, "request_id", None),
            timestamp=datetime.utcnow()
        ).model_dump(mode='json')
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared capture service on startup and release it on shutdown."""
    service = get_capture_service()
    logger.info(f"Media capture API starting ({service.config.summary()})")
    yield
    await shutdown_capture_service()
    logger.info("Media capture API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Range", "Accept-Ranges"],
    )

    # Add request tracking middleware
    @app.middleware("http")
    async def add_request_id_and_logging(request: Request, call_next):
        """Add request ID and logging middleware."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            duration = time.time() - start_time
            logger.info(
                f"Request completed: {request.method} {request.url.path} - {response.status_code}",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration * 1000, 2),
                }
            )
            return response

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} - {str(e)}",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "duration_ms": round(duration * 1000, 2),
                },
                exc_info=True
            )
            raise

    # Global exception handlers
    @app.exception_handler(SessionNotFoundError)
    async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
        """Unknown or expired sessions are the one user-visible session error."""
        logger.warning(
            f"Session {exc.session_id} not found",
            extra={"request_id": getattr(request.state, "request_id", None), "session_id": exc.session_id}
        )
        return _error_response(request, 404, "session_not_found", str(exc), {"session_id": exc.session_id})

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        """Upstream failures of the relay surface only to the relay caller."""
        logger.warning(
            f"Relay failed: {exc}",
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
        details = {"upstream_status": exc.status} if exc.status is not None else None
        return _error_response(request, 502, "relay_error", str(exc), details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        return _error_response(request, exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle Starlette HTTP exceptions."""
        return _error_response(request, exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with detailed information."""
        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"][1:])
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            })

        return _error_response(
            request, 422, "validation_error", "Request validation failed",
            {"validation_errors": errors}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            f"Unhandled exception in request {request_id}: {str(exc)}",
            exc_info=True
        )
        return _error_response(request, 500, "internal_server_error", "An unexpected error occurred")

    # Health check endpoint
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
        description="Returns the current health status of the API and its capture resources"
    )
    async def health_check():
        """Health check endpoint for monitoring and operational purposes."""
        info = get_capture_service().health()
        return HealthResponse(
            status="healthy",
            version=APP_VERSION,
            timestamp=datetime.utcnow(),
            active_sessions=info["active_sessions"],
            browser_running=info["browser_running"],
            uptime_seconds=round(time.monotonic() - app.state.started_at, 1),
        )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint pointing at the API documentation."""
        return JSONResponse(
            content={
                "message": APP_TITLE,
                "version": APP_VERSION,
                "documentation": "/docs",
                "openapi": "/openapi.json"
            }
        )

    # Include API routers
    app.include_router(sessions_router, prefix="/api")
    app.include_router(proxy_router, prefix="/api")
    app.include_router(viewer_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "mediacap.api.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
        access_log=True,
    )
