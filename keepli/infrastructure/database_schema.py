"""
Database schema initialization for Keepli.

Local state is a single key-value table: values are JSON documents, and
expires_at (epoch seconds, nullable) lets quota counters lapse at the UTC day
boundary without a cleanup job.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from keepli.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES: dict[str, list[str]] = {
    "kv_store": ["key", "value", "expires_at", "updated_at"],
}


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
    - Creates the parent directory if needed
    - Creates kv_store and its expiry index if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_kv_store_expires ON kv_store(expires_at);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables or columns are missing
    """
    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(REQUIRED_TABLES) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in REQUIRED_TABLES.items():
        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}
        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True
