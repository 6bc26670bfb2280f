"""Pydantic request/response models for the Keepli API.

Pipeline models (CaptureRequest, SaveResult, SavedRecord) live in
keepli.storage.models; this module holds the shapes only the HTTP layer uses.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from keepli.storage.models import SavedRecord

MAX_SHEET_ID_LENGTH = 200
MAX_LICENSE_KEY_LENGTH = 200


class SettingsUpdate(BaseModel):
    """Partial settings update; only keys present in the body are changed."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    sheet_id: str | None = Field(default=None, alias="sheetId", max_length=MAX_SHEET_ID_LENGTH)
    license_key: str | None = Field(default=None, alias="licenseKey", max_length=MAX_LICENSE_KEY_LENGTH)
    ai_enabled: bool | None = Field(default=None, alias="aiEnabled")

    @field_validator("sheet_id")
    @classmethod
    def sheet_id_is_token(cls, v: str | None) -> str | None:
        if v is not None and any(ch.isspace() or ch == "/" for ch in v.strip()):
            raise ValueError("sheetId must be a spreadsheet id, not a URL")
        return v


class SettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sheet_id: str | None = Field(default=None, alias="sheetId")
    license_key: str | None = Field(default=None, alias="licenseKey")
    ai_enabled: bool = Field(default=True, alias="aiEnabled")


class RecordsResponse(BaseModel):
    records: list[SavedRecord]
    count: int


class UsageResponse(BaseModel):
    scope: str
    licensed: bool
    limit: int
    count: int
    remaining: int


class CaptureStashResponse(BaseModel):
    tab_id: str
    stashed: bool = True
