"""
Save endpoint: the browser extension's single write path.

Failures come back with the pipeline's error code plus its category and
remediation action; the HTTP status follows the error catalog (409 duplicate,
400 validation, 401 unauthorized, 502 remote failure).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from keepli.api.dependencies import get_caller, get_orchestrator
from keepli.infrastructure.errors import describe_error
from keepli.infrastructure.identity import CallerContext
from keepli.observability.logging import get_logger
from keepli.pipeline.orchestrator import SaveOrchestrator
from keepli.storage.models import CaptureRequest

router = APIRouter(prefix="/v1", tags=["save"])
logger = get_logger(__name__)


@router.post("/save")
async def save_capture(
    capture: CaptureRequest,
    orchestrator: SaveOrchestrator = Depends(get_orchestrator),
    caller: CallerContext = Depends(get_caller),
) -> JSONResponse:
    result = await orchestrator.save(capture, caller=caller)
    status_code = status.HTTP_200_OK if result.ok else describe_error(result.error or "").http_status
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", exclude_none=True))
