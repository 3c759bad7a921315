"""
Photocat Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan builds the stores and services and puts them on
       app.state. uvicorn serves the module-level `app` (photocat.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                        │
    │                                                          │
    │  Middleware:  Request ID → Logging → GZip → CORS         │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────────┐ ┌────────────┐ ┌────────────────┐  │
    │  │ POST /api/upload │ │ /data CRUD │ │ GET /health    │  │
    │  │ DELETE /api/image│ │            │ │ GET /files/... │  │
    │  └──────────────────┘ └────────────┘ └────────────────┘  │
    │                                                          │
    │  Exception Handlers → {error, details?, requestId?}      │
    │  ClientInput→400 │ NotFound→404 │ Conflict→409 │ else→500│
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → validate config → build components → (create schema)
    Shutdown: close blob store client → dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from photocat import __version__
from photocat.config import Settings, settings
from photocat.dependencies import build_components
from photocat.exceptions import (
    ClientInputError,
    DatabaseError,
    NotFoundError,
    PhotocatError,
    ProcessingError,
    StoreUnavailableError,
    WriteConflictError,
)
from photocat.middleware.logging import RequestLoggingMiddleware
from photocat.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, request_id_var
from photocat.routes import files, health, photos, upload

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2024-06-10T12:00:00 [INFO] photocat.services.upload_service: message
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Photocat Backend starting up...")

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health still reports and uploads fail with 500
        logger.error("Configuration error: %s", str(e))

    components = build_components(app_settings)
    app.state.record_store = components.record_store
    app.state.blob_store = components.blob_store
    app.state.upload_service = components.upload_service
    app.state.photo_service = components.photo_service

    if app_settings.db_auto_create:
        await components.record_store.create_schema()
        logger.info("Database schema ensured (DB_AUTO_CREATE)")

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Photocat Backend shutting down...")
    await components.blob_store.close()
    await components.record_store.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    details: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the `{error, details?, requestId?}` envelope."""
    content = {"error": error}
    if details:
        content["details"] = details
    rid = request_id_var.get("")
    if rid:
        content["requestId"] = rid
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        message = err.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

        ClientInputError (+ subclasses) → 400, message verbatim
        RequestValidationError          → 400, field errors in details
        HTTPException (404/405 routing) → its status, detail as error
        NotFoundError                   → 404
        WriteConflictError              → 409
        ProcessingError                 → 500 "Failed to process image"
        StoreUnavailableError           → 500 "Failed to access image storage"
        DatabaseError                   → 500 "Database error"
        PhotocatError / Exception       → 500 "Internal server error"

    5xx responses never carry exception context; it is logged instead.
    """

    @app.exception_handler(ClientInputError)
    async def handle_client_input(request: Request, exc: ClientInputError):
        logger.warning("[%s] Client error on %s: %s", request_id_var.get(""), request.url.path, exc.message)
        return error_response(400, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = describe_validation_errors(exc)
        logger.warning("[%s] Invalid request body on %s: %s", request_id_var.get(""), request.url.path, details)
        return error_response(400, "Invalid request", details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # Routing errors (unknown path, wrong method) use the same envelope
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, exc.message)

    @app.exception_handler(WriteConflictError)
    async def handle_write_conflict(request: Request, exc: WriteConflictError):
        logger.warning("[%s] Write conflict persisted: %s", request_id_var.get(""), exc.context)
        return error_response(409, exc.message)

    @app.exception_handler(ProcessingError)
    async def handle_processing_error(request: Request, exc: ProcessingError):
        logger.error("[%s] Image processing error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "Failed to process image", exc.message)

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(request: Request, exc: StoreUnavailableError):
        logger.error("[%s] Blob store error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "Failed to access image storage", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(500, "Database error", exc.message)

    @app.exception_handler(PhotocatError)
    async def handle_photocat_error(request: Request, exc: PhotocatError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(exc.status_code, "Internal server error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return error_response(500, "Internal server error")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        app_settings: Settings to run with; defaults to the environment-loaded
                      singleton. Tests pass their own.
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Photocat API",
        description=(
            "Photo catalogue backend: upload images (resized and re-encoded before "
            "storage) and manage the records that reference them."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(upload.router)
    app.include_router(photos.router)
    app.include_router(health.router)
    if app_settings.blob_backend == "local":
        app.include_router(files.router)

    return app


app = create_app()
