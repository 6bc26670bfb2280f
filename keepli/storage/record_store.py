"""
Local index of saved records.

The index lives under one KV key (savedPosts) as a JSON object mapping
url_hash -> record. It is bounded two ways on every write:
1. Records saved more than SAVED_POST_RETENTION_DAYS ago are dropped
2. Of the rest, only the SAVED_POSTS_LIMIT most recent are kept

Usage:
    store = RecordStore(SqliteKeyValueStore())
    if await store.find_by_hash(url_hash) is None:
        ...
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from keepli.config import SAVED_POST_RETENTION_DAYS, SAVED_POSTS_LIMIT, STORAGE_KEYS
from keepli.infrastructure.kv_store import KeyValueStore
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter
from keepli.storage.models import SavedRecord

logger = get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def apply_retention(
    records: dict[str, dict[str, Any]],
    now_ms: int,
    retention_days: int = SAVED_POST_RETENTION_DAYS,
    limit: int = SAVED_POSTS_LIMIT,
) -> dict[str, dict[str, Any]]:
    """
    Age cutoff first, then the count cap, newest first.

    Entries without a numeric saved_at count as expired.
    """
    cutoff = now_ms - retention_days * DAY_MS
    fresh = [
        (key, record)
        for key, record in records.items()
        if isinstance(record.get("saved_at"), int | float) and record["saved_at"] >= cutoff
    ]
    fresh.sort(key=lambda item: item[1]["saved_at"], reverse=True)
    return dict(fresh[:limit])


class RecordStore:
    def __init__(self, store: KeyValueStore, clock: Callable[[], int] = _now_ms):
        self._store = store
        self._clock = clock
        self._key = STORAGE_KEYS["SAVED_POSTS"]

    async def _load(self) -> dict[str, dict[str, Any]]:
        raw = await self._store.get(self._key)
        if not isinstance(raw, dict):
            return {}
        return {key: value for key, value in raw.items() if isinstance(value, dict)}

    @staticmethod
    def _parse(raw: dict[str, Any]) -> SavedRecord | None:
        try:
            return SavedRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Skipping malformed saved record: %s", e.error_count())
            return None

    async def find_by_hash(self, url_hash: str) -> SavedRecord | None:
        raw = (await self._load()).get(url_hash)
        return self._parse(raw) if raw else None

    async def upsert(self, record: SavedRecord) -> SavedRecord:
        """
        Insert or overwrite the record for its url_hash, stamped with saved_at = now.

        Side Effects:
            - Rewrites the savedPosts index in the KV store (retention applied)
            - Increments records.evicted by the number of entries dropped
        """
        now = self._clock()
        stored = record.model_copy(update={"saved_at": now})

        records = await self._load()
        records[stored.url_hash] = stored.model_dump(mode="json")
        retained = apply_retention(records, now)

        evicted = len(records) - len(retained)
        if evicted:
            counter("records.evicted", evicted)
            logger.info("Evicted %d saved records (retention/cap)", evicted)

        await self._store.put(self._key, retained)
        return stored

    async def list_all(self) -> list[SavedRecord]:
        """All records, newest first."""
        records = [self._parse(raw) for raw in (await self._load()).values()]
        return sorted(
            (record for record in records if record is not None),
            key=lambda record: record.saved_at,
            reverse=True,
        )

    async def remove(self, url_hash: str) -> bool:
        records = await self._load()
        if records.pop(url_hash, None) is None:
            return False
        await self._store.put(self._key, records)
        return True
