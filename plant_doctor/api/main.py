"""
FastAPI Main Application for Plant Doctor.

This module initializes the FastAPI application with all routes, middleware
and exception handlers.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from plant_doctor import __version__
from plant_doctor.api.endpoints.diagnose import router as diagnose_router
from plant_doctor.api.endpoints.history import router as history_router
from plant_doctor.api.endpoints.predict import router as predict_router
from plant_doctor.api.endpoints.taxonomy import router as taxonomy_router
from plant_doctor.api.middleware import REQUEST_ID_HEADER, RequestLoggingMiddleware
from plant_doctor.core.config import get_settings
from plant_doctor.core.database import init_db
from plant_doctor.models.diagnosis import ErrorResponse
from plant_doctor.services.diagnosis_service import NotAPlantError
from plant_doctor.services.inference_client import (
    InferenceConfigurationError,
    InferenceError,
    InferenceUnavailableError,
)
from plant_doctor.services.plant_validator import PlantValidationError
from plant_doctor.services.repository import DiagnosisPersistenceError
from plant_doctor.services.storage import StorageConnectionError
from plant_doctor.services.taxonomy_service import TaxonomyNotFoundError, get_taxonomy_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

_started_at = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on a broken taxonomy file or unreachable database
    get_taxonomy_service()
    init_db()
    logger.info(f"{settings.app_name} v{__version__} started")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Plant disease diagnosis from leaf images",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(predict_router, prefix=settings.api_v1_prefix)
app.include_router(diagnose_router, prefix=settings.api_v1_prefix)
app.include_router(history_router, prefix=settings.api_v1_prefix)
app.include_router(taxonomy_router, prefix=settings.api_v1_prefix)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the structured error body shared by every failure."""
    body = ErrorResponse(error=message, status=status_code, timestamp=_now())
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "message": "Plant Doctor API",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": _now(),
        "uptime": round(time.monotonic() - _started_at, 3),
    }


@app.get(f"{settings.api_v1_prefix}/info")
async def system_info():
    """System information endpoint."""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "debug": settings.debug,
        "models": {
            "general": settings.hugging_face_general_model_id,
            "plant": settings.hugging_face_plant_model_id,
            "disease": settings.hugging_face_disease_model_id,
        },
    }


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = [
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return error_response(422, "Invalid request: " + "; ".join(messages))


@app.exception_handler(NotAPlantError)
async def not_a_plant_handler(request: Request, exc: NotAPlantError):
    return error_response(422, exc.reason)


@app.exception_handler(PlantValidationError)
async def plant_validation_handler(request: Request, exc: PlantValidationError):
    return error_response(503 if exc.retryable else 500, str(exc))


@app.exception_handler(InferenceError)
async def inference_error_handler(request: Request, exc: InferenceError):
    if isinstance(exc, InferenceUnavailableError):
        status_code = 503
    elif isinstance(exc, InferenceConfigurationError):
        status_code = 500
    else:
        status_code = 502
    logger.error(f"Inference failed ({status_code}): {exc}")
    return error_response(status_code, str(exc))


@app.exception_handler(DiagnosisPersistenceError)
async def persistence_error_handler(request: Request, exc: DiagnosisPersistenceError):
    return error_response(500, str(exc))


@app.exception_handler(StorageConnectionError)
async def storage_error_handler(request: Request, exc: StorageConnectionError):
    logger.error(f"Storage unavailable: {exc}")
    return error_response(503, str(exc))


@app.exception_handler(TaxonomyNotFoundError)
async def taxonomy_not_found_handler(request: Request, exc: TaxonomyNotFoundError):
    return error_response(404, str(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception(f"[{request_id}] Unhandled error on {request.method} {request.url.path}")
    response = error_response(500, f"Internal server error: {exc}")
    # Raised past RequestLoggingMiddleware, which never sees this response
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response
