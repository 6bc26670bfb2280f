"""
Save notifications.

Notifying is the last, best-effort step of a save: the orchestrator logs and
swallows any notifier failure, so implementations may raise freely.
"""

from __future__ import annotations

from typing import Protocol

import httpx

from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter, log_event
from keepli.storage.models import SavedRecord
from keepli.utils.redaction import redact

logger = get_logger(__name__)

SHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{sheet_id}"
WEBHOOK_TIMEOUT_SECONDS = 5.0


def destination_url(sheet_id: str | None) -> str | None:
    return SHEET_URL_TEMPLATE.format(sheet_id=sheet_id) if sheet_id else None


def notification_text(record: SavedRecord, sheet_id: str | None) -> str:
    title = record.title if len(record.title) <= 80 else f"{record.title[:79]}…"
    link = destination_url(sheet_id)
    return f"Saved: {title}" + (f" ({link})" if link else "")


class Notifier(Protocol):
    async def notify_saved(self, record: SavedRecord, sheet_id: str | None) -> None: ...


class LogNotifier:
    async def notify_saved(self, record: SavedRecord, sheet_id: str | None) -> None:
        logger.info("%s", notification_text(record, sheet_id))
        counter("notify.sent")
        log_event("notify.saved", content_id=record.url_hash, sheet=redact(sheet_id))


class WebhookNotifier:
    """Posts {"text": ...} to an incoming-webhook URL (Slack-compatible)."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    async def notify_saved(self, record: SavedRecord, sheet_id: str | None) -> None:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json={"text": notification_text(record, sheet_id)})
        response.raise_for_status()
        counter("notify.sent")
