"""FastAPI server for the Keepli browser extension"""

from __future__ import annotations

import os
import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keepli.api.dependencies import get_session
from keepli.api.routes.captures import router as captures_router
from keepli.api.routes.health import router as health_router
from keepli.api.routes.records import router as records_router
from keepli.api.routes.save import router as save_router
from keepli.api.routes.settings import router as settings_router
from keepli.api.routes.usage import router as usage_router
from keepli.config import API_HOST, API_PORT, APP_VERSION, ENV, is_development
from keepli.infrastructure.database import init_database
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event
from keepli.utils.error_sanitizer import get_safe_error_detail
from keepli.utils.redaction import redact

# Load environment variables from .env file
load_dotenv()

app = FastAPI(title="Keepli API", version=APP_VERSION)

logger = get_logger(__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Reject malformed bodies without echoing validation rules or input back.

    Side Effects:
        - Logs the full validation errors (URL redacted)
        - Increments api.validation_errors counter
    """
    logger.warning("Validation error on %s: %s", redact(str(request.url)), exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "ok": False,
            "error": "invalid_request",
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, redact(str(request.url)))
    counter("api.unhandled_errors")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": get_safe_error_detail(exc, status.HTTP_500_INTERNAL_SERVER_ERROR)},
    )


# CORS - the extension origin, plus localhost in development
KEEPLI_EXTENSION_ID = os.getenv("KEEPLI_EXTENSION_ID", "")

ALLOWED_ORIGINS: list[str] = []
if KEEPLI_EXTENSION_ID:
    ALLOWED_ORIGINS.append(f"chrome-extension://{KEEPLI_EXTENSION_ID}")
if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

# Initialize database schema (idempotent)
try:
    init_database()
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(save_router)
app.include_router(records_router)
app.include_router(settings_router)
app.include_router(usage_router)
app.include_router(captures_router)

log_event("api.startup", service="keepli", version=APP_VERSION, environment=ENV)


@app.on_event("shutdown")
async def drain_background_work() -> None:
    """Let in-flight save notifications finish before the loop closes."""
    await get_session().drain()


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "Keepli API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "save": "/v1/save",
            "records": "/v1/records",
            "settings": "/v1/settings",
            "usage": "/v1/usage",
            "captures": "/v1/captures/{tab_id}",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("keepli.api.app:app", host=API_HOST, port=API_PORT, reload=is_development())
