"""
Helpers for keeping identifiers and secrets out of logs.

Provides:
- redact(): stable short hash of a sensitive string, for correlation
- redact_secret(): prefix/suffix mask for keys and tokens
- truncate(): bounded snippet of an upstream body for diagnostics
"""

from __future__ import annotations

from hashlib import sha256


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def redact_secret(value: str | None) -> str:
    """
    Mask a license key or token, keeping just enough to tell two apart.

    Example:
        "lic_abcdef123456" -> "lic_…56"
    """
    if not value:
        return "[missing]"
    if len(value) <= 8:
        return "[redacted]"
    return f"{value[:4]}…{value[-2:]}"


def truncate(text: str | None, limit: int = 500) -> str:
    """Return at most `limit` characters of text with an ellipsis marker."""
    if not text:
        return "<empty>"
    if len(text) <= limit:
        return text
    return f"{text[:limit]}…"
