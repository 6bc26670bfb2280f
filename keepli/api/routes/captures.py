"""
Pending capture hand-off between the page and the save dialog.

The content script posts what it scraped for a tab (author fields, highlight);
the dialog consumes it once when the user saves. Entries expire on their own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from keepli.api.dependencies import get_session
from keepli.api.models import CaptureStashResponse
from keepli.observability.telemetry import counter
from keepli.pipeline.session import SaveSession
from keepli.storage.models import CaptureRequest

router = APIRouter(prefix="/v1/captures", tags=["captures"])


@router.post("/{tab_id}", response_model=CaptureStashResponse, status_code=status.HTTP_202_ACCEPTED)
async def stash_capture(
    tab_id: str,
    capture: CaptureRequest,
    session: SaveSession = Depends(get_session),
) -> CaptureStashResponse:
    session.stash_capture(tab_id, capture)
    counter("captures.stashed")
    return CaptureStashResponse(tab_id=tab_id)


@router.post("/{tab_id}/consume", response_model=CaptureRequest)
async def consume_capture(tab_id: str, session: SaveSession = Depends(get_session)) -> CaptureRequest:
    capture = session.consume_capture(tab_id)
    if capture is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No pending capture for tab")
    counter("captures.consumed")
    return capture
