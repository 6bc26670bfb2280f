"""
Tests for the spreadsheet client

Covers:
- Append request shape (range, query params, 16-cell row)
- One interactive re-auth and one retry on 401/403, never more
- Error-code mapping for upstream, transport and credential failures
- Row lookup and in-place update
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from keepli.infrastructure.errors import SheetsSyncError
from keepli.observability.telemetry import get_counters
from keepli.sheets.client import SheetsClient
from keepli.sheets.row import SheetRow
from keepli.storage.models import SavedRecord

APPEND_OK = {"updates": {"updatedRange": "Sheet1!A7:P7", "updatedRows": 1}}


def _row() -> SheetRow:
    record = SavedRecord(
        url="https://example.com/p/1",
        url_hash="abc123",
        title="Post",
        post_content="body",
        tags=["growth", "ai"],
    )
    return SheetRow.from_record(record)


def _client(tokens, handler) -> SheetsClient:
    return SheetsClient(tokens, endpoint="https://sheets.test", transport=httpx.MockTransport(handler))


def test_append_request_shape(tokens):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=APPEND_OK)

    row_number = asyncio.run(_client(tokens, handler).append("sheet-123", _row()))

    assert row_number == 7
    [request] = requests
    assert request.method == "POST"
    assert request.url.path == "/v4/spreadsheets/sheet-123/values/Sheet1!A:P:append"
    assert request.url.params["valueInputOption"] == "RAW"
    assert request.url.params["insertDataOption"] == "INSERT_ROWS"
    assert request.headers["Authorization"] == "Bearer token-1"
    values = json.loads(request.content)["values"]
    assert len(values) == 1
    assert len(values[0]) == 16
    assert values[0][10] == "growth, ai"
    assert values[0][14] == "abc123"


def test_append_without_updated_range_returns_none(tokens):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    assert asyncio.run(_client(tokens, handler).append("sheet-123", _row())) is None


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failure_refreshes_once_and_retries(tokens, status):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            return httpx.Response(status)
        return httpx.Response(200, json=APPEND_OK)

    assert asyncio.run(_client(tokens, handler).append("sheet-123", _row())) == 7

    assert len(requests) == 2
    assert requests[0].headers["Authorization"] == "Bearer token-1"
    assert requests[1].headers["Authorization"] == "Bearer token-2"
    assert tokens.invalidated == ["token-1"]
    assert tokens.interactive_calls == 1


def test_second_auth_failure_is_fatal(tokens):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(401)

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(tokens, handler).append("sheet-123", _row()))

    assert exc_info.value.code == "unauthorized"
    assert len(requests) == 2
    assert tokens.interactive_calls == 1
    assert get_counters("sheets.unauthorized") == {"sheets.unauthorized": 1}


def test_upstream_error_carries_message_fragment(tokens):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"code": 500, "message": "Backend " + "x" * 300}})

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(tokens, handler).append("sheet-123", _row()))

    error = exc_info.value
    assert error.code == "sheets_append_failed"
    assert error.status_code == 500
    assert str(error).startswith("Backend ")
    assert len(str(error)) == 200


def test_upstream_error_without_json_body(tokens):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="Service Unavailable")

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(tokens, handler).append("sheet-123", _row()))

    assert exc_info.value.code == "sheets_append_failed"


def test_transport_failure_is_network_error(tokens):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(tokens, handler).append("sheet-123", _row()))

    assert exc_info.value.code == "network_error"
    assert get_counters("sheets.network_error") == {"sheets.network_error": 1}


def test_missing_credentials_are_unauthorized(failing_tokens):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=APPEND_OK)

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(failing_tokens, handler).append("sheet-123", _row()))

    assert exc_info.value.code == "unauthorized"
    assert requests == []


def test_find_row_scans_content_id_column(tokens):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"values": [["Content ID"], [], ["other"], ["abc123"]]})

    client = _client(tokens, handler)

    assert asyncio.run(client.find_row("sheet-123", "abc123")) == 4
    assert asyncio.run(client.find_row("sheet-123", "nope")) is None
    assert requests[0].method == "GET"
    assert requests[0].url.path == "/v4/spreadsheets/sheet-123/values/Sheet1!O:O"


def test_find_row_failure_code(tokens):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(SheetsSyncError) as exc_info:
        asyncio.run(_client(tokens, handler).find_row("sheet-123", "abc123"))

    assert exc_info.value.code == "sheets_lookup_failed"


def test_update_row_puts_full_row(tokens):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"updatedRange": "Sheet1!A4:P4"})

    asyncio.run(_client(tokens, handler).update_row("sheet-123", 4, _row()))

    [request] = requests
    assert request.method == "PUT"
    assert request.url.path == "/v4/spreadsheets/sheet-123/values/Sheet1!A4:P4"
    assert request.url.params["valueInputOption"] == "RAW"
    body = json.loads(request.content)
    assert body["range"] == "Sheet1!A4:P4"
    assert len(body["values"][0]) == 16
