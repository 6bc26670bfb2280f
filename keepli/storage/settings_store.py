"""
User settings persisted in the local KV store.

Each setting has its own key (sheetId, licenseKey, aiEnabled) so the pipeline
can read just what it needs.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from keepli.config import STORAGE_KEYS
from keepli.infrastructure.kv_store import KeyValueStore
from keepli.observability.logging import get_logger
from keepli.utils.redaction import redact_secret

logger = get_logger(__name__)


class UserSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sheet_id: str | None = Field(default=None, alias="sheetId")
    license_key: str | None = Field(default=None, alias="licenseKey")
    ai_enabled: bool = Field(default=True, alias="aiEnabled")


class SettingsStore:
    def __init__(self, store: KeyValueStore):
        self._store = store

    async def get_sheet_id(self) -> str | None:
        value = await self._store.get(STORAGE_KEYS["SHEET_ID"])
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    async def load(self) -> UserSettings:
        license_key = await self._store.get(STORAGE_KEYS["LICENSE_KEY"])
        ai_enabled = await self._store.get(STORAGE_KEYS["AI_ENABLED"])
        return UserSettings(
            sheet_id=await self.get_sheet_id(),
            license_key=license_key if isinstance(license_key, str) and license_key.strip() else None,
            ai_enabled=ai_enabled is not False,
        )

    async def update(self, changes: dict[str, object]) -> UserSettings:
        """
        Apply a partial update keyed by field name; None or blank strings clear a setting.

        Side Effects:
            - Writes or deletes the corresponding KV keys
        """
        keys = {
            "sheet_id": STORAGE_KEYS["SHEET_ID"],
            "license_key": STORAGE_KEYS["LICENSE_KEY"],
            "ai_enabled": STORAGE_KEYS["AI_ENABLED"],
        }
        for field, value in changes.items():
            key = keys.get(field)
            if key is None:
                continue
            if value is None or (isinstance(value, str) and not value.strip()):
                await self._store.delete(key)
            else:
                await self._store.put(key, value.strip() if isinstance(value, str) else value)

        if "license_key" in changes:
            license_key = changes["license_key"]
            logger.info("License key updated: %s", redact_secret(license_key if isinstance(license_key, str) else None))
        return await self.load()
