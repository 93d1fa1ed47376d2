"""Notes API Server - Main Entry Point"""

import asyncio
import pathlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.middleware import RequestLoggingMiddleware
from src.api.routes import chats, health
from src.core.config import settings
from src.core.exceptions import InvalidContentError, InvalidRequestError, InvalidTitleError, NoteError
from src.core.logging import get_logger, log_error, setup_logging
from src.db.session import engine

# Configure structured logging
setup_logging(
    level="DEBUG" if settings.debug else "INFO",
    json_logs=settings.environment == "production",
)
logger = get_logger(__name__)


def run_migrations() -> None:
    """Upgrade the database schema to the latest revision."""
    from alembic import command
    from alembic.config import Config

    base_dir = pathlib.Path(__file__).parent.parent
    alembic_cfg = Config(str(base_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(base_dir / "alembic"))
    command.upgrade(alembic_cfg, "head")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info(
        "Starting Notes API Server",
        extra={
            "event_type": "startup",
            "environment": settings.environment,
            "debug": settings.debug,
        },
    )

    if settings.run_migrations:
        try:
            logger.info("Starting database migrations...")
            # Alembic's env.py calls asyncio.run, so keep it off the event loop
            await asyncio.wait_for(asyncio.to_thread(run_migrations), timeout=60.0)
            logger.info("Database migrations completed successfully")
        except TimeoutError:
            logger.error("Database migrations timed out after 60 seconds - continuing without migrations")
        except Exception as e:
            logger.warning(f"Could not run migrations (may already be up to date): {e}")

    yield

    logger.info(
        "Shutting down Notes API Server",
        extra={"event_type": "shutdown"},
    )
    await engine.dispose()


app = FastAPI(
    title="Notes API",
    description="Conversational note-taking service",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware are processed in REVERSE order of addition
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - added last so it processes first
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(chats.router, prefix="/api/v1/chats", tags=["Chats"])


@app.exception_handler(NoteError)
async def note_error_handler(request: Request, exc: NoteError) -> JSONResponse:
    """Render domain errors as ``{"error": kind, "detail": message}``."""
    if exc.status_code >= 500:
        logger.warning(
            f"{exc.kind}: {exc.message}",
            extra={"event_type": exc.kind, "path": request.url.path},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map unparseable requests onto the domain error of the route they target."""
    logger.warning(
        f"Validation error on path {request.url.path}: {[err['loc'] for err in exc.errors()]}",
        extra={"event_type": "validation_error", "path": request.url.path},
    )
    error: NoteError
    path = request.url.path.rstrip("/")
    if request.method == "POST" and path.endswith("/messages"):
        error = InvalidContentError()
    elif request.method == "PATCH" and path.endswith("/title"):
        error = InvalidTitleError()
    else:
        error = InvalidRequestError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler with full error logging."""
    log_error(
        logger,
        "Unhandled exception",
        error=exc,
        extra={
            "path": request.url.path,
            "method": request.method,
            "client_ip": request.client.host if request.client else "unknown",
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint for basic connectivity check."""
    return {"status": "ok", "service": "notes-api"}
