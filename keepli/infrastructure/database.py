"""Centralized SQLite configuration

Keepli keeps its local state (saved-record index, quota counters, settings,
identity caches) in ONE SQLite file: keepli/data/keepli.db, or the path in
KEEPLI_DB_PATH. All access goes through get_db_connection()/db_transaction().

Provides:
- Connection pooling (reuses connections across requests and worker threads)
- Retry with backoff on "database is locked"
- Idempotent schema initialization
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from keepli.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from keepli.observability.logging import get_logger
from keepli.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

DB_PATH = Path(__file__).parent.parent / "data" / "keepli.db"

logger = get_logger(__name__)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Usage:
        @retry_on_db_lock()
        def write_entry():
            with db_transaction() as conn:
                conn.execute("INSERT INTO ...")

    Side Effects:
        - Sleeps between retries (exponential backoff with jitter)
        - Logs a warning per retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    counter("database.lock_retry")
                    time.sleep(sleep_time)

            raise AssertionError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Thread-safe connection pool for SQLite

    Connections are shared with worker threads (asyncio.to_thread), so they are
    opened with check_same_thread=False and handed out one caller at a time.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE):
        self.db_path = db_path
        self.pool_size = pool_size
        self.pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self.lock = Lock()
        self.closed = False
        self._initialize_pool()

        atexit.register(self.close_all)

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_pool(self) -> None:
        for _ in range(self.pool_size):
            try:
                self.pool.put(self._create_connection())
            except sqlite3.Error as e:
                logger.warning("Failed to create pooled connection: %s", e)

    def get_connection(self) -> sqlite3.Connection:
        """
        Get connection from pool, or a temporary one if the pool stays empty

        Raises:
            RuntimeError: If the pool has been closed
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=DB_POOL_TIMEOUT)
        except Empty:
            logger.error("Connection pool exhausted (pool_size=%d), opening temporary connection", self.pool_size)
            counter("database.pool_exhausted")
            conn = self._create_connection()
            conn._is_temporary = True  # type: ignore[attr-defined]
            return conn

    def return_connection(self, conn: sqlite3.Connection) -> None:
        if self.closed or getattr(conn, "_is_temporary", False):
            conn.close()
            return
        try:
            self.pool.put_nowait(conn)
        except Full:
            logger.warning("Failed to return connection to pool (pool full), closing")
            conn.close()

    def close_all(self) -> None:
        """
        Close all pooled connections

        Side Effects:
            - Marks the pool closed and closes every idle connection
        """
        self.closed = True
        while not self.pool.empty():
            try:
                self.pool.get_nowait().close()
            except Empty:
                break


def get_db_path() -> Path:
    """
    Get database path (environment-aware)

    Checks KEEPLI_DB_PATH first, falls back to keepli/data/keepli.db.
    """
    if env_path := os.getenv("KEEPLI_DB_PATH"):
        return Path(env_path)
    return DB_PATH


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """
    Get or create the process-wide connection pool (singleton via lru_cache)

    Side Effects:
        - Creates the database file and schema on first call
    """
    db_path = get_db_path()
    init_database(db_path)
    return DatabaseConnectionPool(db_path, pool_size=DB_POOL_SIZE)


def reset_pool() -> None:
    """
    Close and forget the pool so the next call re-reads KEEPLI_DB_PATH.

    Used by tests that point each case at its own temporary database.
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Get pooled database connection (context manager)

    Usage:
        with get_db_connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    """
    pool = get_pool()
    conn = pool.get_connection()
    try:
        yield conn
    finally:
        pool.return_connection(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database transactions

    Automatically commits on success, rolls back on error.
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def init_database(db_path: Path | None = None) -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
        - Creates the data directory and tables if they don't exist
    """
    from keepli.infrastructure.database_schema import init_database as _init_database

    _init_database(db_path or get_db_path())


def get_pool_stats() -> dict[str, Any]:
    """
    Get connection pool health metrics
    """
    pool = get_pool()
    available = pool.pool.qsize()
    in_use = pool.pool_size - available
    usage_percent = (in_use / pool.pool_size) * 100 if pool.pool_size > 0 else 0

    return {
        "pool_size": pool.pool_size,
        "available": available,
        "in_use": in_use,
        "usage_percent": round(usage_percent, 1),
        "closed": pool.closed,
    }
