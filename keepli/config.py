"""Centralized configuration for the Keepli backend.

Re-exports everything from keepli.infrastructure.settings, then adds typed
constants for storage, the AI client, quota tiers, retention, and the sheet
layout. Environment variable overrides use safe defaults so the app starts
without extra configuration.
"""

from __future__ import annotations

import os

from keepli.infrastructure.settings import *  # noqa: F401, F403 (re-export settings)

# --- App ---
APP_VERSION: str = "0.3.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("KEEPLI_DB_POOL_SIZE", "3"))
DB_POOL_TIMEOUT: float = float(os.getenv("KEEPLI_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("KEEPLI_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("KEEPLI_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("KEEPLI_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("KEEPLI_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("KEEPLI_DB_RETRY_JITTER", "0.1"))

# --- Remote system of record ---
# "sheets" appends to a Google Sheet; "hosted" writes to the hosted items table
REMOTE_BACKEND: str = os.getenv("KEEPLI_REMOTE_BACKEND", "sheets")

# --- Spreadsheet layout ---
SHEET_NAME: str = os.getenv("KEEPLI_SHEET_NAME", "Sheet1")
SHEET_CONTENT_ID_COLUMN: str = "O"
SHEET_LAST_COLUMN: str = "P"
SHEET_ERROR_FRAGMENT_MAX: int = 200

# --- Managed AI ---
AI_TIMEOUT_SECONDS: float = float(os.getenv("KEEPLI_AI_TIMEOUT", "12"))
AI_POST_CONTENT_MAX: int = 2000
AI_SUMMARY_MAX: int = 160
AI_TAG_MAX_LENGTH: int = 24
AI_TAGS_MAX: int = 5
AI_INTENTS: tuple[str, ...] = ("learn", "post_idea", "outreach", "research")

# Daily AI enrichment ceilings, keyed by deployment tier then caller tier
AI_DAILY_LIMITS: dict[str, dict[str, int]] = {
    "production": {"licensed": 200, "anonymous": 20},
    "staging": {"licensed": 100, "anonymous": 10},
    "development": {"licensed": 50, "anonymous": 5},
}

# --- Capture ---
CAPTURE_TITLE_MAX: int = 320
CAPTURE_HIGHLIGHT_MAX: int = 1000
DEFAULT_STATUS: str = "inbox"

# --- Local record index ---
SAVED_POSTS_LIMIT: int = 50
SAVED_POST_RETENTION_DAYS: int = 90

# --- Local storage keys ---
STORAGE_KEYS: dict[str, str] = {
    "SHEET_ID": "sheetId",
    "SAVED_POSTS": "savedPosts",
    "LICENSE_KEY": "licenseKey",
    "AI_ENABLED": "aiEnabled",
}


def daily_limit_for(environment: str, licensed: bool) -> int:
    """Look up the AI ceiling for a deployment tier; unknown tiers get development limits."""
    tier = AI_DAILY_LIMITS.get(environment, AI_DAILY_LIMITS["development"])
    return tier["licensed" if licensed else "anonymous"]
