"""FastAPI application entry point and lifespan management.

Configures logging and CORS, registers the API routers and the error
handlers that render every failure as ``{"error": ...}``, and manages the
application lifespan (database tables, notification channel rows, HTTP
client shutdown).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from feedback_portal.api.router import router as api_router
from feedback_portal.config import get_settings
from feedback_portal.database import create_tables
from feedback_portal.schemas.common import HealthResponse

logger = logging.getLogger(__name__)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy third-party HTTP loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Runs on startup: DB directory, tables and channel rows."""
    settings = get_settings()
    _setup_logging(settings.LOG_LEVEL)

    if settings.sqlite_path is not None:
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    create_tables()
    logger.info("Database tables ready")

    from feedback_portal.utils.startup import ensure_notification_channels
    ensure_notification_channels()

    if not settings.FEEDBACK_API_KEY:
        logger.warning("FEEDBACK_API_KEY not set - integration and admin APIs are open")
    if not settings.ai_api_key:
        logger.info("No %s API key configured; AI categorization disabled", settings.AI_PROVIDER)

    yield  # Application runs here

    # Graceful shutdown: close shared HTTP clients
    from feedback_portal.services.http_client_manager import close_all_clients
    await close_all_clients()
    logger.info("Shutting down")


def validation_message(exc: RequestValidationError) -> str:
    """First validation error as one line, e.g. ``Missing required field: subject``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "body"
    kind = first.get("type")
    if kind == "missing" or (kind != "value_error" and first.get("input") in ("", None)):
        return f"Missing required field: {field}"
    return f"Invalid value for {field}: {first.get('msg', 'invalid')}"


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": validation_message(exc)})

    # Global exception handler: detail goes to the log only
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # Health check
    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def health():
        return HealthResponse(
            status="healthy",
            version=settings.APP_VERSION,
            timestamp=datetime.now(timezone.utc),
        )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()
