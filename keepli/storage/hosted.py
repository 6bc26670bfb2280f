"""Hosted items table (PostgREST)

Alternative remote system of record: one row per (user_id, url_hash) in the
`items` table behind a PostgREST gateway. Requests carry the user's bearer
token plus the project's anon `apikey`; row-level security scopes every query
to the token's user.

Error mapping:
- 401 -> unauthorized
- 409 on insert -> duplicate (with the existing item when it can be read)
- any other non-2xx -> hosted_save_failed
- no response -> network_error
"""

from __future__ import annotations

from typing import Any

import httpx

from keepli.config import HOSTED_ANON_KEY, HOSTED_URL
from keepli.infrastructure.credentials import TokenProvider
from keepli.infrastructure.errors import CredentialError, HostedStoreError
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event, time_block
from keepli.sheets.row import SheetRow
from keepli.storage.models import SavedRecord
from keepli.storage.remote import PersistReceipt

logger = get_logger(__name__)

ITEMS_PATH = "rest/v1/items"
USER_PATH = "auth/v1/user"

# SavedRecord field -> items column, where they differ
_COLUMN_NAMES = {"summary": "summary_160"}
_SKIPPED_FIELDS = {"saved_at"}


def record_to_item(record: SavedRecord, user_id: str) -> dict[str, Any]:
    item: dict[str, Any] = {"user_id": user_id}
    for field, value in record.model_dump(mode="json").items():
        if field in _SKIPPED_FIELDS:
            continue
        item[_COLUMN_NAMES.get(field, field)] = value
    return item


def item_to_record(item: dict[str, Any]) -> SavedRecord:
    fields = {field: item.get(column) for field, column in _COLUMN_NAMES.items()}
    for field in SavedRecord.model_fields:
        if field not in fields and field not in _SKIPPED_FIELDS and item.get(field) is not None:
            fields[field] = item[field]
    fields["tags"] = item.get("tags") if isinstance(item.get("tags"), list) else []
    return SavedRecord.model_validate(fields)


class HostedItemsStore:
    requires_sheet_id = False

    def __init__(
        self,
        tokens: TokenProvider,
        base_url: str = HOSTED_URL,
        anon_key: str = HOSTED_ANON_KEY,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.tokens = tokens
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self._transport = transport
        self._user_id: str | None = None

    async def _headers(self, **extra: str) -> dict[str, str]:
        try:
            token = await self.tokens.get_token()
        except CredentialError as e:
            raise HostedStoreError("unauthorized", str(e)) from e
        return {
            "Authorization": f"Bearer {token}",
            "apikey": self.anon_key,
            "Accept-Profile": "public",
            **extra,
        }

    async def _call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.request(method, f"{self.base_url}/{path}", **kwargs)
        except httpx.TransportError as e:
            logger.warning("Hosted store %s %s failed without a response: %s", method, path, type(e).__name__)
            counter("hosted.network_error")
            raise HostedStoreError("network_error", str(e) or type(e).__name__) from e

        if response.status_code == 401:
            counter("hosted.unauthorized")
            raise HostedStoreError("unauthorized", status_code=401)
        return response

    @staticmethod
    def _first_row(response: httpx.Response, action: str) -> dict[str, Any]:
        if not response.is_success:
            logger.error("Hosted store %s failed: HTTP %d", action, response.status_code)
            raise HostedStoreError(
                "hosted_save_failed",
                f"failed_to_{action}:{response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        if not isinstance(data, list) or not data:
            raise HostedStoreError("hosted_save_failed", f"empty_{action}_response")
        return data[0]

    async def user_id(self) -> str:
        """Id of the token's user (cached after the first lookup)."""
        if self._user_id is None:
            response = await self._call("GET", USER_PATH, headers=await self._headers())
            if not response.is_success:
                raise HostedStoreError(
                    "hosted_save_failed",
                    f"failed_to_fetch_user:{response.status_code}",
                    status_code=response.status_code,
                )
            body = response.json()
            if not isinstance(body, dict) or not isinstance(body.get("id"), str):
                raise HostedStoreError("hosted_save_failed", "invalid_user_response")
            self._user_id = body["id"]
        return self._user_id

    async def find_by_hash(self, url_hash: str) -> dict[str, Any] | None:
        user_id = await self.user_id()
        response = await self._call(
            "GET",
            ITEMS_PATH,
            params={"user_id": f"eq.{user_id}", "url_hash": f"eq.{url_hash}", "select": "*", "limit": "1"},
            headers=await self._headers(),
        )
        if not response.is_success:
            raise HostedStoreError(
                "hosted_save_failed",
                f"failed_to_fetch_items:{response.status_code}",
                status_code=response.status_code,
            )
        data = response.json()
        return data[0] if isinstance(data, list) and data else None

    async def insert(self, record: SavedRecord) -> dict[str, Any]:
        response = await self._call(
            "POST",
            ITEMS_PATH,
            json=record_to_item(record, await self.user_id()),
            headers=await self._headers(Prefer="return=representation"),
        )
        if response.status_code == 409:
            counter("hosted.duplicate")
            existing = await self.find_by_hash(record.url_hash)
            raise HostedStoreError(
                "duplicate",
                status_code=409,
                existing=item_to_record(existing) if existing else None,
            )
        return self._first_row(response, "insert_item")

    async def update(self, item_id: str, record: SavedRecord) -> dict[str, Any]:
        payload = record_to_item(record, await self.user_id())
        payload.pop("user_id")
        response = await self._call(
            "PATCH",
            ITEMS_PATH,
            params={"id": f"eq.{item_id}"},
            json=payload,
            headers=await self._headers(Prefer="return=representation"),
        )
        return self._first_row(response, "update_item")

    async def persist(self, sheet_id: str | None, record: SavedRecord, overwrite: bool) -> PersistReceipt:
        """
        Insert the record, or update the existing item in place on a forced save

        Side Effects:
            - Reads and writes the hosted items table
            - Increments hosted.insert / hosted.update counters
        """
        row = SheetRow.from_record(record).to_cells()
        with time_block("hosted.persist"):
            if overwrite:
                existing = await self.find_by_hash(record.url_hash)
                if existing and existing.get("id"):
                    item = await self.update(str(existing["id"]), record)
                    counter("hosted.update")
                    log_event("hosted.update", content_id=record.url_hash)
                    return PersistReceipt(row=row, updated=True, remote_id=str(item.get("id")))

            item = await self.insert(record)
        counter("hosted.insert")
        log_event("hosted.insert", content_id=record.url_hash)
        return PersistReceipt(row=row, remote_id=str(item.get("id")))
