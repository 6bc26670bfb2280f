"""
Error message sanitization.

Keeps tracebacks, file paths, SQL errors and credentials out of HTTP responses.
"""

from __future__ import annotations

import re

from keepli.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    r"/[^\s]+\.py",
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    r"sqlite3?\.",
    r"no such (table|column)",
    r"Bearer [A-Za-z0-9._-]+",
    r"[A-Za-z0-9_-]{32,}",
    r"keepli\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    404: "Resource not found.",
    422: "Invalid data format.",
    500: "An internal error occurred. Please try again later.",
    502: "Upstream service failed. Please try again.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return message if it is a short, plain 4xx explanation; otherwise the generic text for status_code.
    """
    generic = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message or status_code >= 500:
        return generic

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return generic

    if len(message) < 100 and not any(c in message for c in "{}[]\n"):
        return message
    return generic


def get_safe_error_detail(error: Exception, status_code: int = 500) -> str:
    """Log the full error, return a client-safe detail string."""
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, error)
    return sanitize_error_message(str(error), status_code)
