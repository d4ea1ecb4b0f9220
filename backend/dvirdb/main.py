# backend/dvirdb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import (
    DependencyDegraded,
    DVIRError,
    InvalidInput,
    InvalidTransition,
    NotFound,
    StorageFailure,
    Unauthorized,
)

from .apps.audit.router import router as audit_router
from .apps.defects.router import router as defects_router
from .apps.fleet.router import router as fleet_router
from .apps.inspections.router import router as inspections_router

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    InvalidInput: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTransition: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
    DependencyDegraded: status.HTTP_503_SERVICE_UNAVAILABLE,
}

try:
    RETRY_AFTER_SEC = int(os.getenv("STORAGE_RETRY_AFTER_SEC", "2"))
except ValueError:
    RETRY_AFTER_SEC = 2


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]


def status_for(exc: DVIRError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_dvir_error(request: Request, exc: DVIRError) -> JSONResponse:
    code = status_for(exc)
    headers = {}
    if isinstance(exc, StorageFailure) and exc.retryable:
        headers["Retry-After"] = str(RETRY_AFTER_SEC)
    if code >= 500:
        logger.error(
            "Request failed",
            extra={"error_class": exc.code, "path": request.url.path},
        )
    return JSONResponse(status_code=code, content=exc.as_dict(), headers=headers or None)


app = FastAPI(title="DVIR Compliance API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DVIRError, handle_dvir_error)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "DVIR compliance backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(fleet_router)
app.include_router(defects_router)
app.include_router(inspections_router)
app.include_router(audit_router)
