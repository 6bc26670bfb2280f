"""
User settings endpoints.

The license key is never echoed back in full; GET returns the masked form.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from keepli.api.dependencies import get_settings_store
from keepli.api.models import SettingsResponse, SettingsUpdate
from keepli.storage.settings_store import SettingsStore, UserSettings
from keepli.utils.redaction import redact_secret

router = APIRouter(prefix="/v1/settings", tags=["settings"])


def _to_response(settings: UserSettings) -> SettingsResponse:
    return SettingsResponse(
        sheet_id=settings.sheet_id,
        license_key=redact_secret(settings.license_key) if settings.license_key else None,
        ai_enabled=settings.ai_enabled,
    )


@router.get("", response_model=SettingsResponse, response_model_by_alias=True)
async def get_settings(store: SettingsStore = Depends(get_settings_store)) -> SettingsResponse:
    return _to_response(await store.load())


@router.put("", response_model=SettingsResponse, response_model_by_alias=True)
async def update_settings(
    update: SettingsUpdate,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsResponse:
    settings = await store.update(update.model_dump(exclude_unset=True))
    return _to_response(settings)
