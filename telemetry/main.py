"""
main.py — Telemetry service FastAPI application entry point.

Start with: uvicorn telemetry.main:app --reload --port 8080
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from telemetry.config import settings
from telemetry.database import async_engine, create_tables, get_db
from telemetry.errors import TelemetryError
from telemetry.store import describe_table, ping

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Create missing tables (CREATE_TABLES=true; no migration tooling)
    Shutdown:
      1. Dispose the engine's connection pool
    """
    if settings.create_tables:
        await create_tables()
        logger.info("Telemetry tables ensured")

    logger.info("Telemetry service v%s starting up", settings.app_version)
    yield

    await async_engine.dispose()
    logger.info("Database pool disposed; telemetry service shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Telemetry API",
    version=settings.app_version,
    description=(
        "Receives browser telemetry events (page views, clicks, scrolls, session ends) "
        "and serves trailing-24h aggregates for the analytics dashboard."
    ),
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS middleware — the capture script runs on arbitrary customer origins
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials="*" not in settings.cors_origins_list,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {error: {code, message, details}} response."""
    body = {
        "error": {
            "code": code,
            "message": message,
            "details": details or [],
        }
    }
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# Global exception handlers — registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(TelemetryError)
async def telemetry_error_handler(
    request: Request, exc: TelemetryError
) -> JSONResponse:
    """
    Renders ValidationError (400), NotFoundError (404), MappingError and
    StorageError (500) in the standard envelope.
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Query-parameter violations (e.g. limit=0) → 422 with every field listed."""
    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query"))
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Converts HTTPException (including the router's own 404/405) to the standard
    error format with a semantic code.
    """
    code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        413: "PAYLOAD_TOO_LARGE",
        415: "UNSUPPORTED_MEDIA_TYPE",
        422: "VALIDATION_ERROR",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = str(exc.detail)
    if exc.status_code == 404:
        message = f"Route not found: {request.url.path}"
    return _make_error_response(
        code=code,
        message=message,
        status_code=exc.status_code,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type & message in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    if settings.debug:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# System endpoints (no auth)
# ---------------------------------------------------------------------------
@app.get("/health", tags=["System"])
@app.get("/api/health", tags=["System"])
async def health_check() -> dict:
    """Liveness only — does not touch the database (see /test-db)."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/test-db", tags=["System"])
async def test_database(db: AsyncSession = Depends(get_db)) -> dict:
    """Round-trip SELECT 1 against the analytics store."""
    dialect = await ping(db)
    return {"success": True, "dialect": dialect}


@app.get("/table-schema", tags=["System"])
async def table_schema(
    table: str = Query("clicks"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Column introspection of one telemetry table, as it exists in the database."""
    columns = await describe_table(db, table)
    return {"status": "OK", "table": table, "schema": columns}


# ---------------------------------------------------------------------------
# Feature routers
# ---------------------------------------------------------------------------
from telemetry.dashboard.routes import router as dashboard_router
from telemetry.ingest.routes import router as ingest_router

app.include_router(ingest_router)
app.include_router(dashboard_router)
