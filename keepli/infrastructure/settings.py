"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os

# Environment
ENV = os.getenv("KEEPLI_ENV", "development")

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Remote summarization service (managed AI)
AI_ENDPOINT = os.getenv("KEEPLI_AI_ENDPOINT", "https://api.keepli.app")

# Google Sheets
SHEETS_API_ENDPOINT = os.getenv("KEEPLI_SHEETS_API_ENDPOINT", "https://sheets.googleapis.com")
GOOGLE_CREDENTIALS_FILE = os.getenv("KEEPLI_GOOGLE_CREDENTIALS", "credentials/authorized_user.json")
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Hosted database (PostgREST-style items table)
HOSTED_URL = os.getenv("KEEPLI_HOSTED_URL", "")
HOSTED_ANON_KEY = os.getenv("KEEPLI_HOSTED_ANON_KEY", "")
HOSTED_ACCESS_TOKEN = os.getenv("KEEPLI_HOSTED_ACCESS_TOKEN", "")

# Save notifications
NOTIFY_WEBHOOK_URL = os.getenv("KEEPLI_NOTIFY_WEBHOOK_URL", "")


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"
