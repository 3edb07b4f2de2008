"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from resume_ledger.db.session import SessionLocal
from resume_ledger.errors import (
    ConflictError,
    DegradedModeError,
    NotFoundError,
    PartialBatchFailure,
    PermissionDeniedError,
    ReconciliationError,
    ValidationError,
)
from resume_ledger.routers import confirmed_profile, entities, normalized_entities, resume_versions

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[ReconciliationError], int], ...] = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PermissionDeniedError, 403),
    (DegradedModeError, 503),
    (PartialBatchFailure, 207),
)


def _warm_backend_state() -> None:
    """Prime the DB connection at process start."""

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Backend warm-up failed; continuing without startup pre-warm.")


@asynccontextmanager
async def lifespan(_: FastAPI):
    _warm_backend_state()
    yield


app = FastAPI(title="Resume Ledger API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    status_code = next((code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)), 400)
    if status_code >= 500:
        logger.warning("api.degraded path=%s error=%s", request.url.path, exc)
    content: dict[str, object] = {"detail": str(exc), "error": exc.__class__.__name__}
    if isinstance(exc, PartialBatchFailure):
        content["failures"] = exc.failures
    return JSONResponse(status_code=status_code, content=content)


app.include_router(entities.router, tags=["entities"])
app.include_router(resume_versions.router, tags=["resume-versions"])
app.include_router(normalized_entities.router, tags=["normalized-entities"])
app.include_router(confirmed_profile.router, tags=["confirmed-profile"])


@app.get("/health")
def health() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}
