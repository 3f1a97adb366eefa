"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: logging, Mongo lifecycle, scheduled sync
    jobs, middleware and router wiring, and the HTTP mapping of domain errors.

Dependencies:
    - app.database
    - app.workers.match_sync_worker
    - app.providers.betsapi
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

from app.config import settings
import app.database as _db
from app.database import connect_db, close_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.providers.betsapi import RemoteFetchError, betsapi_provider
from app.services.match_store import DuplicateExternalIdError, MatchNotFoundError

logger = logging.getLogger("matchsync")
scheduler = AsyncIOScheduler()


def _register_sync_jobs() -> int:
    from app.workers.match_sync_worker import (
        FULL_SYNC_WORKER_ID,
        INPLAY_SYNC_WORKER_ID,
        run_scheduled_full_sync,
        run_scheduled_inplay_sync,
    )

    specs = [
        (FULL_SYNC_WORKER_ID, run_scheduled_full_sync, settings.SYNC_SCHEDULER_INTERVAL_MINUTES),
        (INPLAY_SYNC_WORKER_ID, run_scheduled_inplay_sync, settings.SYNC_INPLAY_INTERVAL_MINUTES),
    ]
    for job_id, func, minutes in specs:
        scheduler.add_job(
            func,
            "interval",
            id=job_id,
            minutes=max(1, int(minutes)),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    return len(specs)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    scheduler.start()
    if settings.SYNC_SCHEDULER_ENABLED:
        added = _register_sync_jobs()
        logger.info("Scheduled match sync enabled (%d jobs)", added)
    else:
        logger.info("Scheduled match sync disabled via config; admin-triggered syncs only")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await betsapi_provider.aclose()
    await close_db()


app = FastAPI(
    title="Match Sync",
    description="Football match sync and reconciliation backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(StructuredLoggingMiddleware)

from app.routers.admin_matches import router as admin_matches_router
from app.routers.admin_sync import router as admin_sync_router
from app.routers.matches import router as matches_router

app.include_router(matches_router)
app.include_router(admin_sync_router)
app.include_router(admin_matches_router)


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(MatchNotFoundError)
async def match_not_found_handler(request: Request, exc: MatchNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Match not found."})


@app.exception_handler(DuplicateExternalIdError)
async def duplicate_external_id_handler(request: Request, exc: DuplicateExternalIdError):
    return JSONResponse(
        status_code=409,
        content={"detail": "A match with this external id already exists.", "external_id": exc.external_id},
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(RemoteFetchError)
async def remote_fetch_handler(request: Request, exc: RemoteFetchError):
    logger.error("Provider fetch failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"detail": "Match provider unavailable.", "state": exc.state, "page": exc.page},
    )


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check: DB ping plus provider circuit state."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "betsapi": {"circuit_open": betsapi_provider.circuit_open},
        "scheduler": {"enabled": settings.SYNC_SCHEDULER_ENABLED, "jobs": len(scheduler.get_jobs())},
    }
