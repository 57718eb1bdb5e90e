"""Academic Records API: FastAPI application entry point.

Features:
- Lifespan context manager: probes the DB, optionally creates tables,
  installs the per-student lock table, disposes the engine on shutdown
- Structured exception handlers for all enrollment domain exceptions
- Request/response logging middleware with request-ID tracing
- /health endpoint: checks DB connectivity
"""

from __future__ import annotations

import datetime
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError

from src.config import get_settings
from src.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)

# ---------------------------------------------------------------------------
# Logging setup  (must happen before routers are imported)
# ---------------------------------------------------------------------------

_settings = get_settings()
logging.basicConfig(
    level=getattr(logging, _settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Router and service imports
# ---------------------------------------------------------------------------

from src.api import enrollments as _enrollments_module  # noqa: E402
from src.database import check_db_connection, dispose_engine, init_db  # noqa: E402
from src.services.locks import StudentLocks  # noqa: E402

# Register all ORM models with the declarative base (required for metadata)
import src.models  # noqa: F401, E402

# ---------------------------------------------------------------------------
# Lifespan context manager
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Startup sequence:
    1. Install a fresh per-student lock table on ``app.state``.
    2. Probe DB connectivity and log the result (non-fatal at startup).
    3. Create missing tables when ``create_tables_on_startup`` is set.

    Shutdown:
    1. Dispose the SQLAlchemy connection pool gracefully.
    """
    logger.info("Academic Records API starting up (v%s)", _settings.app_version)

    app.state.student_locks = StudentLocks()

    db_health = await check_db_connection()
    if db_health["status"] == "ok":
        logger.info("Database: OK")
        if _settings.create_tables_on_startup:
            await init_db()
            logger.info("Database tables ensured from ORM metadata")
    else:
        logger.warning("Database: DEGRADED (%s)", db_health.get("detail", "unknown"))

    logger.info("Startup complete, serving requests")
    yield

    logger.info("Academic Records API shutting down")
    try:
        await dispose_engine()
    except Exception as exc:
        logger.warning("Error during engine disposal: %s", exc)
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Academic Records API",
    description=(
        "Tracks which student is enrolled in which grade over time: "
        "enrollment, transfer, end of enrollment, graduation and history queries."
    ),
    version=_settings.app_version,
    debug=_settings.debug,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "health",
            "description": "System health and readiness checks.",
        },
        {
            "name": "student-grades",
            "description": (
                "Student enrollment lifecycle. POST to enroll, transfer, end or"
                " graduate; GET to query current and historical enrollments."
            ),
        },
    ],
)

# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next: Any) -> Response:
    """Log every HTTP request with method, path, status, and duration.

    A short UUID-derived ``request_id`` is attached to each log line and
    returned as the ``X-Request-ID`` response header.
    """
    request_id = str(uuid.uuid4())[:8]
    t0 = time.monotonic()
    logger.info("[%s] → %s %s", request_id, request.method, request.url.path)

    try:
        response: Response = await call_next(request)
    except Exception as exc:
        elapsed = (time.monotonic() - t0) * 1000
        logger.error(
            "[%s] ✗ %s %s unhandled after %.1f ms: %s",
            request_id,
            request.method,
            request.url.path,
            elapsed,
            exc,
        )
        raise

    elapsed = (time.monotonic() - t0) * 1000
    logger.info(
        "[%s] ← %s %s %d (%.1f ms)",
        request_id,
        request.method,
        request.url.path,
        response.status_code,
        elapsed,
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Structured exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError) -> JSONResponse:
    """400 for inputs rejected by local validation."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_argument", "message": exc.message},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """404 for missing grades, enrollments, or active enrollments."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "message": exc.message},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """409 for requests incompatible with the student's enrollment state."""
    error = "invalid_state" if isinstance(exc, InvalidStateError) else "conflict"
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": error, "message": exc.message},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """409 when a database constraint rejects a write (e.g. second active enrollment)."""
    logger.warning("IntegrityError: %s", exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "conflict",
            "message": "The request conflicts with existing enrollment records",
        },
    )


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """503 for database connectivity failures."""
    logger.error("OperationalError: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "database_unavailable", "message": str(exc.orig or exc)},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render FastAPI HTTPExceptions as structured JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )


# ---------------------------------------------------------------------------
# Core routes
# ---------------------------------------------------------------------------


@app.get("/", tags=["health"], summary="API root / service info")
async def root() -> dict[str, str]:
    """Return basic service metadata and navigation links."""
    return {
        "service": "Academic Records API",
        "version": _settings.app_version,
        "documentation": "/docs",
        "health": "/health",
        "openapi": "/openapi.json",
    }


@app.get(
    "/health",
    tags=["health"],
    summary="System health check",
    description=(
        "Probes database connectivity. ``status: ok`` means the database is"
        " reachable; ``status: degraded`` means the API is responding but"
        " the database is not."
    ),
)
async def health_check() -> dict[str, Any]:
    """Return current system health including DB status."""
    db_health = await check_db_connection()
    return {
        "status": "ok" if db_health["status"] == "ok" else "degraded",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "version": _settings.app_version,
        "database": db_health,
    }


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------

app.include_router(_enrollments_module.router)


# ---------------------------------------------------------------------------
# Development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=_settings.log_level.lower(),
    )
