"""FastAPI dependency providers

Process-wide collaborators (KV store, session, remote store, notifier) are
built once via lru_cache; per-request objects (stores, orchestrator) are thin
wrappers around them. Tests replace any provider with
app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from keepli.config import (
    GOOGLE_CREDENTIALS_FILE,
    HOSTED_ACCESS_TOKEN,
    NOTIFY_WEBHOOK_URL,
    REMOTE_BACKEND,
)
from keepli.infrastructure.credentials import GoogleTokenProvider, StaticTokenProvider
from keepli.infrastructure.identity import CallerContext
from keepli.infrastructure.kv_store import KeyValueStore, SqliteKeyValueStore
from keepli.infrastructure.quota import QuotaLedger
from keepli.llm.enrichment import EnrichmentClient
from keepli.observability.logging import get_logger
from keepli.pipeline.notifier import LogNotifier, Notifier, WebhookNotifier
from keepli.pipeline.orchestrator import SaveOrchestrator
from keepli.pipeline.session import SaveSession
from keepli.sheets.client import SheetsClient
from keepli.storage.hosted import HostedItemsStore
from keepli.storage.record_store import RecordStore
from keepli.storage.remote import RemoteStore, SheetsRemoteStore
from keepli.storage.settings_store import SettingsStore

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_kv_store() -> KeyValueStore:
    return SqliteKeyValueStore()


@lru_cache(maxsize=1)
def get_session() -> SaveSession:
    return SaveSession()


@lru_cache(maxsize=1)
def get_remote_store() -> RemoteStore:
    """Remote system of record selected by KEEPLI_REMOTE_BACKEND."""
    if REMOTE_BACKEND == "hosted":
        logger.info("Remote backend: hosted items table")
        return HostedItemsStore(StaticTokenProvider(HOSTED_ACCESS_TOKEN))
    if REMOTE_BACKEND != "sheets":
        logger.warning("Unknown KEEPLI_REMOTE_BACKEND=%s, using sheets", REMOTE_BACKEND)
    return SheetsRemoteStore(SheetsClient(GoogleTokenProvider(GOOGLE_CREDENTIALS_FILE)))


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    if NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(NOTIFY_WEBHOOK_URL)
    return LogNotifier()


def get_record_store(store: KeyValueStore = Depends(get_kv_store)) -> RecordStore:
    return RecordStore(store)


def get_settings_store(store: KeyValueStore = Depends(get_kv_store)) -> SettingsStore:
    return SettingsStore(store)


def get_quota_ledger(store: KeyValueStore = Depends(get_kv_store)) -> QuotaLedger:
    return QuotaLedger(store)


def get_enrichment_client(
    store: KeyValueStore = Depends(get_kv_store),
    ledger: QuotaLedger = Depends(get_quota_ledger),
) -> EnrichmentClient:
    return EnrichmentClient(store, ledger=ledger)


def get_orchestrator(
    records: RecordStore = Depends(get_record_store),
    settings: SettingsStore = Depends(get_settings_store),
    remote: RemoteStore = Depends(get_remote_store),
    enrichment: EnrichmentClient = Depends(get_enrichment_client),
    notifier: Notifier = Depends(get_notifier),
    session: SaveSession = Depends(get_session),
) -> SaveOrchestrator:
    return SaveOrchestrator(records, settings, remote, enrichment, notifier=notifier, session=session)


def get_caller(request: Request) -> CallerContext:
    """Client IP (first X-Forwarded-For hop when proxied) and user agent."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return CallerContext(ip=ip or None, user_agent=request.headers.get("user-agent"))
