"""Main FastAPI application for the prompt library service."""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import prompts
from .config import Settings, get_settings
from .exceptions import PromptLibraryException, map_to_http_exception
from .schemas.prompt import ApiResponse
from .services.prompt_service import PromptService
from .storage import FileStorage, StorageProvider
from .utils.logging_utils import LogContext, log_with_timing

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def _error_response(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    body = ApiResponse(success=False, error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(
    settings: Optional[Settings] = None, storage: Optional[StorageProvider] = None
) -> FastAPI:
    """Build the application with its prompt service wired to file storage."""
    settings = settings or get_settings()

    if storage is None:
        storage = FileStorage(
            data_dir=settings.data_dir,
            file_name=settings.data_file_name,
            backup_dir_name=settings.backup_dir_name,
            max_backups=settings.max_backups,
        )
    prompt_service = PromptService(storage, default_limit=settings.default_page_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.service_name} v{settings.service_version}")
        # Load eagerly so no request ever races the first hydration
        with LogContext(logger, "prompt library initialization"):
            await app.state.prompt_service.initialize()
        yield
        logger.info(f"Shutting down {settings.service_name}")

    app = FastAPI(
        title="Prompt Library API",
        description="A REST API for managing prompts with file-based storage",
        version=settings.service_version,
        lifespan=lifespan,
        openapi_url=f"{API_PREFIX}/openapi.json",
        docs_url=f"{API_PREFIX}/docs",
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.prompt_service = prompt_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        log_with_timing(
            logger,
            start_time,
            time.perf_counter(),
            f"{request.method} {request.url.path}",
            status=response.status_code,
        )
        return response

    @app.middleware("http")
    async def limit_request_size(request: Request, call_next):
        content_length = request.headers.get("content-length", "")
        if content_length.isdigit() and int(content_length) > settings.max_request_bytes:
            logger.warning(
                f"Rejected {request.method} {request.url.path}: body of {content_length} bytes "
                f"exceeds {settings.max_request_bytes}"
            )
            return _error_response(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                "Request entity too large",
                f"Request body exceeds limit of {settings.max_request_bytes} bytes",
            )
        return await call_next(request)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.exception_handler(PromptLibraryException)
    async def service_exception_handler(request: Request, exc: PromptLibraryException):
        """Handle service exceptions."""
        http_exc = map_to_http_exception(exc, hide_details=settings.is_production)
        if http_exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return _error_response(http_exc.status_code, http_exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = ", ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        logger.info(f"Validation error at {request.url.path}: {message}")
        return _error_response(status.HTTP_400_BAD_REQUEST, "Validation error", message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            return _error_response(exc.status_code, "Not Found", f"Cannot {request.method} {request.url.path}")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error at {request.url.path}: {exc}", exc_info=exc)
        error = "Internal server error" if settings.is_production else str(exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, error)

    app.include_router(prompts.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return ApiResponse(
            success=True,
            message="Prompt Library Service is running",
            data={
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "version": settings.service_version,
            },
        ).model_dump(exclude_none=True)

    @app.get("/api")
    async def api_info():
        """API info endpoint."""
        return ApiResponse(
            success=True,
            message="Prompt Library API v1",
            data={
                "version": "v1",
                "endpoints": {
                    f"GET {API_PREFIX}/prompts": "List all prompts with optional filtering",
                    f"POST {API_PREFIX}/prompts": "Create a new prompt",
                    f"GET {API_PREFIX}/prompts/search?q=query": "Search prompts",
                    f"GET {API_PREFIX}/prompts/categories": "Get all categories",
                    f"GET {API_PREFIX}/prompts/tags": "Get all tags",
                    f"GET {API_PREFIX}/prompts/stats": "Get usage statistics",
                    f"GET {API_PREFIX}/prompts/:id": "Get a specific prompt",
                    f"PUT {API_PREFIX}/prompts/:id": "Update a specific prompt",
                    f"DELETE {API_PREFIX}/prompts/:id": "Delete a specific prompt",
                },
                "documentation": app.docs_url,
                "openapi": app.openapi_url,
            },
        ).model_dump(exclude_none=True)

    return app


app = create_app()
