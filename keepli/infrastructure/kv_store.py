"""
Local key-value storage for the save pipeline.

The pipeline only needs get/put/delete of JSON values with an optional expiry,
so it talks to a small KeyValueStore protocol. SqliteKeyValueStore is the
durable backend (kv_store table, calls run in a worker thread);
MemoryKeyValueStore backs tests and ephemeral runs.

Expired entries are treated as absent on read and removed lazily.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from typing import Any, Protocol

from keepli.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from keepli.observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def put(self, key: str, value: Any, expires_at: float | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class SqliteKeyValueStore:
    """
    KeyValueStore over the pooled sqlite database.

    Values are stored as JSON text; expires_at is epoch seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._get, key)

    async def put(self, key: str, value: Any, expires_at: float | None = None) -> None:
        await asyncio.to_thread(self._put, key, value, expires_at)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    def _get(self, key: str) -> Any | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()

        if row is None:
            return None
        if row["expires_at"] is not None and row["expires_at"] <= self._clock():
            logger.debug("Expired key dropped on read: %s", key)
            self._delete(key)
            return None
        return json.loads(row["value"])

    @retry_on_db_lock()
    def _put(self, key: str, value: Any, expires_at: float | None) -> None:
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, expires_at, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps(value), expires_at),
            )

    @retry_on_db_lock()
    def _delete(self, key: str) -> None:
        with db_transaction() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))


class MemoryKeyValueStore:
    """Dict-backed KeyValueStore. Values are JSON round-tripped so callers never share mutable state."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return json.loads(raw)

    async def put(self, key: str, value: Any, expires_at: float | None = None) -> None:
        self._data[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
