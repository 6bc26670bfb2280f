"""
Daily quota ledger for AI enrichment calls.

One counter per (scope, identity, UTC date), stored in the key-value store
under quota:<scope>:<identity>:<YYYY-MM-DD> and expiring at the next UTC
midnight, so a new day starts from zero without cleanup.

The read-modify-write is optimistic: two increments racing in the same tick
can both pass. The ceiling is advisory, not a distributed guarantee.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import NamedTuple

from keepli.infrastructure.kv_store import KeyValueStore
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter

logger = get_logger(__name__)


class QuotaCheck(NamedTuple):
    """Result of one ledger call."""

    allowed: bool
    count: int
    limit: int
    remaining: int

    def snapshot(self) -> dict[str, int]:
        return {"limit": self.limit, "remaining": self.remaining, "count": self.count}


def _utc_now() -> datetime:
    return datetime.now(UTC)


def quota_key(scope: str, identity: str, day: str) -> str:
    return f"quota:{scope}:{identity}:{day}"


def next_utc_midnight(now: datetime) -> datetime:
    """First instant of the UTC day after `now`."""
    now = now.astimezone(UTC)
    return datetime(now.year, now.month, now.day, tzinfo=UTC) + timedelta(days=1)


class QuotaLedger:
    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = _utc_now):
        self._store = store
        self._clock = clock

    def _key(self, scope: str, identity: str) -> tuple[str, datetime]:
        now = self._clock().astimezone(UTC)
        return quota_key(scope, identity, now.strftime("%Y-%m-%d")), now

    async def _read_count(self, key: str) -> int:
        entry = await self._store.get(key)
        if isinstance(entry, dict):
            try:
                return max(int(entry.get("count", 0)), 0)
            except (TypeError, ValueError):
                logger.warning("Discarding malformed quota entry: %s", key)
        return 0

    async def increment(self, scope: str, identity: str, daily_limit: int) -> QuotaCheck:
        """
        Consume one unit of today's quota if any remains.

        Side Effects:
            - Writes the incremented counter (with expiry) to the KV store when allowed
            - Increments quota.allowed / quota.refused counters
        """
        if daily_limit <= 0:
            counter("quota.refused")
            return QuotaCheck(allowed=False, count=daily_limit, limit=daily_limit, remaining=0)

        key, now = self._key(scope, identity)
        count = await self._read_count(key)

        if count >= daily_limit:
            counter("quota.refused")
            logger.info("Quota exhausted for scope=%s (%d/%d)", scope, count, daily_limit)
            return QuotaCheck(allowed=False, count=count, limit=daily_limit, remaining=0)

        next_count = count + 1
        await self._store.put(key, {"count": next_count}, expires_at=next_utc_midnight(now).timestamp())
        counter("quota.allowed")
        return QuotaCheck(
            allowed=True,
            count=next_count,
            limit=daily_limit,
            remaining=max(daily_limit - next_count, 0),
        )

    async def peek(self, scope: str, identity: str, daily_limit: int) -> QuotaCheck:
        """Report today's usage without consuming anything."""
        if daily_limit <= 0:
            return QuotaCheck(allowed=False, count=0, limit=daily_limit, remaining=0)

        key, _ = self._key(scope, identity)
        count = await self._read_count(key)
        remaining = max(daily_limit - count, 0)
        return QuotaCheck(allowed=remaining > 0, count=count, limit=daily_limit, remaining=remaining)
