"""Local saved-record index: list newest first, remove one."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from keepli.api.dependencies import get_record_store
from keepli.api.models import RecordsResponse
from keepli.observability.logging import get_logger
from keepli.storage.record_store import RecordStore

router = APIRouter(prefix="/v1/records", tags=["records"])
logger = get_logger(__name__)


@router.get("", response_model=RecordsResponse)
async def list_records(records: RecordStore = Depends(get_record_store)) -> RecordsResponse:
    items = await records.list_all()
    return RecordsResponse(records=items, count=len(items))


@router.delete("/{url_hash}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(url_hash: str, records: RecordStore = Depends(get_record_store)) -> Response:
    if not await records.remove(url_hash):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    logger.info("Removed saved record %s", url_hash)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
