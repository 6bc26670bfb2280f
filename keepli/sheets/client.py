"""Google Sheets values API client

Writes saved posts as rows of a user's spreadsheet with a bearer token from a
TokenProvider.

Authorization discipline (shared by every call):
- First attempt uses the cached token (non-interactive)
- On 401/403 the token is invalidated, a fresh one is acquired interactively,
  and the same request is retried exactly once
- A second 401/403 is fatal ("unauthorized")

No other retries happen here. Non-auth HTTP failures raise the operation's
error code; transport failures raise "network_error".
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

import httpx

from keepli.config import (
    SHEET_CONTENT_ID_COLUMN,
    SHEET_ERROR_FRAGMENT_MAX,
    SHEET_LAST_COLUMN,
    SHEET_NAME,
    SHEETS_API_ENDPOINT,
)
from keepli.infrastructure.credentials import TokenProvider
from keepli.infrastructure.errors import CredentialError, SheetsSyncError
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event, time_block
from keepli.sheets.row import SheetRow
from keepli.utils.redaction import redact

logger = get_logger(__name__)

AUTH_FAILURE_STATUSES = frozenset({401, 403})
_UPDATED_ROW_PATTERN = re.compile(r"![A-Z]+(\d+)")


def _error_fragment(response: httpx.Response) -> str | None:
    """Upstream error.message, bounded, when the body carries one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if isinstance(message, str) and message:
            return message[:SHEET_ERROR_FRAGMENT_MAX]
    return None


class SheetsClient:
    def __init__(
        self,
        tokens: TokenProvider,
        endpoint: str = SHEETS_API_ENDPOINT,
        sheet_name: str = SHEET_NAME,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.tokens = tokens
        self.endpoint = endpoint.rstrip("/")
        self.sheet_name = sheet_name
        self._transport = transport

    def _values_url(self, sheet_id: str, cell_range: str, suffix: str = "") -> str:
        encoded = quote(f"{self.sheet_name}!{cell_range}", safe="!:")
        return f"{self.endpoint}/v4/spreadsheets/{quote(sheet_id, safe='')}/values/{encoded}{suffix}"

    async def _token(self, interactive: bool) -> str:
        try:
            return await self.tokens.get_token(interactive=interactive)
        except CredentialError as e:
            logger.warning("Could not acquire spreadsheet credential: %s", e)
            raise SheetsSyncError("unauthorized", str(e)) from e

    async def _send(self, method: str, url: str, token: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                return await client.request(
                    method,
                    url,
                    headers={"Authorization": f"Bearer {token}"},
                    **kwargs,
                )
        except httpx.TransportError as e:
            logger.warning("Sheets %s failed without a response: %s", method, type(e).__name__)
            counter("sheets.network_error")
            raise SheetsSyncError("network_error", str(e) or type(e).__name__) from e

    async def _request(self, method: str, url: str, failure_code: str, **kwargs: Any) -> httpx.Response:
        """
        Send with one interactive re-auth retry on 401/403

        Raises:
            SheetsSyncError: unauthorized, network_error, or failure_code
        """
        token = await self._token(interactive=False)
        response = await self._send(method, url, token, **kwargs)

        if response.status_code in AUTH_FAILURE_STATUSES:
            logger.info("Sheets returned %d, refreshing credential once", response.status_code)
            counter("sheets.auth_retry")
            self.tokens.invalidate(token)
            token = await self._token(interactive=True)
            response = await self._send(method, url, token, **kwargs)
            if response.status_code in AUTH_FAILURE_STATUSES:
                counter("sheets.unauthorized")
                raise SheetsSyncError("unauthorized", status_code=response.status_code)

        if not response.is_success:
            fragment = _error_fragment(response)
            logger.error("Sheets %s failed: HTTP %d %s", method, response.status_code, fragment or "")
            counter(f"sheets.{failure_code}")
            raise SheetsSyncError(failure_code, fragment, status_code=response.status_code)

        return response

    async def append(self, sheet_id: str, row: SheetRow) -> int | None:
        """
        Append one row after the last row of the sheet

        Returns:
            1-based row number written, when the API reports it

        Side Effects:
            - POSTs to the values:append endpoint (at most twice)
            - Increments sheets.append counter
        """
        url = self._values_url(sheet_id, f"A:{SHEET_LAST_COLUMN}", ":append")
        with time_block("sheets.append"):
            response = await self._request(
                "POST",
                url,
                "sheets_append_failed",
                params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
                json={"values": [row.to_cells()]},
            )

        counter("sheets.append")
        log_event("sheets.append", sheet=redact(sheet_id), content_id=row.url_hash)
        try:
            updated_range = response.json().get("updates", {}).get("updatedRange", "")
        except (ValueError, AttributeError):
            return None
        match = _UPDATED_ROW_PATTERN.search(updated_range or "")
        return int(match.group(1)) if match else None

    async def find_row(self, sheet_id: str, content_id: str) -> int | None:
        """1-based number of the first row whose content-id cell matches, or None."""
        column = SHEET_CONTENT_ID_COLUMN
        url = self._values_url(sheet_id, f"{column}:{column}")
        response = await self._request("GET", url, "sheets_lookup_failed")

        try:
            values = response.json().get("values", [])
        except (ValueError, AttributeError):
            return None
        for row_number, cells in enumerate(values, start=1):
            if cells and cells[0] == content_id:
                return row_number
        return None

    async def update_row(self, sheet_id: str, row_number: int, row: SheetRow) -> None:
        """
        Overwrite one existing row in place

        Side Effects:
            - PUTs to the values endpoint for A{n}:P{n} (at most twice)
        """
        cell_range = f"A{row_number}:{SHEET_LAST_COLUMN}{row_number}"
        url = self._values_url(sheet_id, cell_range)
        with time_block("sheets.update"):
            await self._request(
                "PUT",
                url,
                "sheets_update_failed",
                params={"valueInputOption": "RAW"},
                json={
                    "range": f"{self.sheet_name}!{cell_range}",
                    "majorDimension": "ROWS",
                    "values": [row.to_cells()],
                },
            )
        counter("sheets.update")
        log_event("sheets.update", sheet=redact(sheet_id), row=row_number, content_id=row.url_hash)
