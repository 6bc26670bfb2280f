"""
Remote system of record.

The orchestrator persists through a RemoteStore so the destination (a user's
Google Sheet or the hosted items table) is a deployment choice, not a code
path in the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from keepli.observability.logging import get_logger
from keepli.sheets.client import SheetsClient
from keepli.sheets.row import SheetRow
from keepli.storage.models import SavedRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class PersistReceipt:
    row: list[str]
    updated: bool = False
    row_number: int | None = None
    remote_id: str | None = None


class RemoteStore(Protocol):
    requires_sheet_id: bool

    async def persist(self, sheet_id: str | None, record: SavedRecord, overwrite: bool) -> PersistReceipt: ...


class SheetsRemoteStore:
    """
    Persists records as spreadsheet rows.

    A forced re-save overwrites the row carrying the same content id when one
    exists; otherwise the record is appended.
    """

    requires_sheet_id = True

    def __init__(self, client: SheetsClient):
        self.client = client

    async def persist(self, sheet_id: str | None, record: SavedRecord, overwrite: bool) -> PersistReceipt:
        if not sheet_id:
            raise ValueError("SheetsRemoteStore requires a sheet id")

        row = SheetRow.from_record(record)
        if overwrite:
            row_number = await self.client.find_row(sheet_id, record.url_hash)
            if row_number is not None:
                await self.client.update_row(sheet_id, row_number, row)
                return PersistReceipt(row=row.to_cells(), updated=True, row_number=row_number)
            logger.info("Forced save found no existing row for %s, appending", record.url_hash)

        row_number = await self.client.append(sheet_id, row)
        return PersistReceipt(row=row.to_cells(), row_number=row_number)
