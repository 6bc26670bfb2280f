"""
Error types and the user-facing error catalog.

Every fatal save failure carries a stable machine-readable code. The catalog
maps each code to a taxonomy category and the remediation the caller should
offer, so the HTTP layer never has to inspect exception text.
"""

from __future__ import annotations

from typing import NamedTuple


class KeepliError(RuntimeError):
    """Base error with a stable code and an optional upstream HTTP status."""

    def __init__(self, code: str, message: str | None = None, status_code: int | None = None):
        super().__init__(message or code)
        self.code = code
        self.status_code = status_code


class SheetsSyncError(KeepliError):
    pass


class HostedStoreError(KeepliError):
    """Hosted items table failure. A 409 carries the conflicting item when it could be fetched."""

    def __init__(
        self,
        code: str,
        message: str | None = None,
        status_code: int | None = None,
        existing: object | None = None,
    ):
        super().__init__(code, message, status_code)
        self.existing = existing


class CredentialError(KeepliError):
    """Bearer token could not be acquired or refreshed."""

    def __init__(self, message: str | None = None):
        super().__init__("unauthorized", message)


class EnrichmentError(KeepliError):
    """Raised inside the AI client only; always converted to an outcome before returning."""

    def __init__(self, status: str, message: str | None = None, quota: dict | None = None):
        super().__init__(status, message)
        self.quota = quota


class CatalogEntry(NamedTuple):
    category: str
    action: str
    http_status: int


ERROR_CATALOG: dict[str, CatalogEntry] = {
    "missing_fields": CatalogEntry("validation", "fix_input", 400),
    "missing_sheet_id": CatalogEntry("validation", "configure", 400),
    "invalid_request": CatalogEntry("validation", "fix_input", 400),
    "duplicate": CatalogEntry("conflict", "save_anyway", 409),
    "unauthorized": CatalogEntry("authorization", "reconnect", 401),
    "network_error": CatalogEntry("transport", "retry", 502),
    "sheets_append_failed": CatalogEntry("upstream_unavailable", "retry", 502),
    "sheets_update_failed": CatalogEntry("upstream_unavailable", "retry", 502),
    "sheets_lookup_failed": CatalogEntry("upstream_unavailable", "retry", 502),
    "hosted_save_failed": CatalogEntry("upstream_unavailable", "retry", 502),
    "save_failed": CatalogEntry("upstream_unavailable", "retry", 502),
    "quota": CatalogEntry("quota_exceeded", "open_destination", 200),
}

_FALLBACK = CatalogEntry("upstream_unavailable", "retry", 502)


def describe_error(code: str) -> CatalogEntry:
    """Catalog entry for a code; unknown codes are treated as retryable upstream failures."""
    return ERROR_CATALOG.get(code, _FALLBACK)
