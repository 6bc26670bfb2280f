"""
Caller identity for quota accounting.

A stored license key identifies a licensed caller. Without one, the caller is
anonymous and identified by a short fingerprint over its IP and user agent.
"""

from __future__ import annotations

from dataclasses import dataclass
from hashlib import sha256

from keepli.config import STORAGE_KEYS
from keepli.infrastructure.kv_store import KeyValueStore
from keepli.utils.redaction import redact_secret

FINGERPRINT_LENGTH = 16


@dataclass(frozen=True)
class CallerContext:
    """Network facts about the request that triggered a save."""

    ip: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class CallerIdentity:
    scope: str  # "license" or "anonymous"
    identity: str
    license_key: str | None = None

    @property
    def licensed(self) -> bool:
        return self.scope == "license"

    def __str__(self) -> str:
        if self.licensed:
            return f"Caller(license, {redact_secret(self.license_key)})"
        return f"Caller(anonymous, {self.identity})"


def anonymous_fingerprint(caller: CallerContext | None) -> str:
    """First 16 hex chars of sha256("<ip>|<user-agent>"), with "unknown" for missing parts."""
    ip = (caller.ip if caller else None) or "unknown"
    user_agent = (caller.user_agent if caller else None) or "unknown"
    return sha256(f"{ip}|{user_agent}".encode()).hexdigest()[:FINGERPRINT_LENGTH]


async def load_license_key(store: KeyValueStore) -> str | None:
    """Stored license key, trimmed; None when absent or blank."""
    value = await store.get(STORAGE_KEYS["LICENSE_KEY"])
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


async def resolve_identity(store: KeyValueStore, caller: CallerContext | None = None) -> CallerIdentity:
    license_key = await load_license_key(store)
    if license_key:
        return CallerIdentity(scope="license", identity=license_key, license_key=license_key)
    return CallerIdentity(scope="anonymous", identity=anonymous_fingerprint(caller))
